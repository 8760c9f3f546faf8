"""
Shared fixtures for recorder tests
"""

from typing import Callable, List, Optional, Tuple

import pytest

from statify.event_log import EventLog
from statify.models import PlaybackObservation
from statify.scheduler import Scheduler


class ManualScheduler(Scheduler):
    """Scheduler fake that records timers and fires them on demand"""

    def __init__(self):
        self.pending: List[Tuple[str, Callable[[], None], float]] = []
        self.history: List[Tuple[str, float]] = []
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def schedule(self, name: str, func: Callable[[], None], delay_s: float) -> None:
        self.pending.append((name, func, delay_s))
        self.history.append((name, delay_s))

    def shutdown(self, wait: bool = True) -> None:
        self.stopped = True

    def delays(self, name: str) -> List[float]:
        return [delay for job_name, delay in self.history if job_name == name]

    def run_next(self, name: Optional[str] = None) -> None:
        """Fire the oldest pending timer (optionally the oldest with ``name``)"""
        for index, (job_name, func, _) in enumerate(self.pending):
            if name is None or job_name == name:
                del self.pending[index]
                func()
                return
        raise AssertionError(f"No pending timer named {name!r}")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def event_log(tmp_path):
    log = EventLog(f"sqlite:///{tmp_path / 'events.db'}")
    log.ensure_schema()
    yield log
    log.dispose()


@pytest.fixture
def make_observation():
    def _make(**overrides) -> PlaybackObservation:
        fields = dict(
            is_playing=True,
            item_uri="spotify:track:abc",
            timestamp_ms=1000,
            progress_ms=1500,
            device_id="dev1",
            is_shuffling=True,
            context_uri="spotify:playlist:xyz",
        )
        fields.update(overrides)
        return PlaybackObservation(**fields)
    return _make
