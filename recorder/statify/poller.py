"""
Fixed-delay poller recording what the account is playing
"""

import logging
import threading
from typing import Callable, Optional

from .credentials import CredentialStore
from .errors import AuthError, ClassificationAmbiguity, StorageError, TransportError
from .event_log import EventLog
from .logging_utils import log_error, log_poll_outcome
from .models import Event, NoChange, NotPlaying, PlaybackObservation, Playing, PollOutcome, PollStats, classify
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

JOB_NAME = "poll-playback"


class StatePoller:
    """
    Polls the currently-playing endpoint and appends one event per playing result.

    The next poll is armed ``interval_s`` after the previous one finishes, so
    polls never overlap. Nothing raised inside a poll stops the schedule.
    """

    def __init__(self, store: CredentialStore,
                 fetch: Callable[[str], Optional[PlaybackObservation]],
                 event_log: EventLog, scheduler: Scheduler, interval_s: float = 60.0):
        self.store = store
        self._fetch = fetch
        self.event_log = event_log
        self.scheduler = scheduler
        self.interval_s = interval_s
        self.stats = PollStats()
        self._stats_lock = threading.Lock()
        self._stopped = threading.Event()

    def start(self, initial_delay_s: float = 0.0) -> None:
        self._stopped.clear()
        logger.info(f"State poller starting, polling every {self.interval_s:.0f}s")
        self._arm(initial_delay_s)

    def stop(self) -> None:
        self._stopped.set()

    def _count(self, field_name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, field_name, getattr(self.stats, field_name) + 1)

    def poll_once(self) -> Optional[PollOutcome]:
        """
        Run one poll.

        Returns:
            The outcome, or None if the poll was skipped or failed
        """
        self._count("polls")
        access_token = self.store.access_token
        if not access_token:
            self._count("skipped")
            logger.warning("No access token yet, skipping poll")
            return None

        try:
            outcome = classify(self._fetch(access_token))
            log_poll_outcome(logger, type(outcome).__name__)

            if isinstance(outcome, NoChange):
                logger.debug("Context was null, result probably didn't change")
                self._count("no_change")
            elif isinstance(outcome, NotPlaying):
                logger.debug("Not playing")
                self._count("not_playing")
            elif isinstance(outcome, Playing):
                event = Event.from_observation(outcome.observation)
                self.event_log.append(event)
                self._count("appended")
                logger.info(f"Recorded {event.song_uri} (context: {event.context_uri or '-'}, device: {event.device or '-'})")
            return outcome

        except ClassificationAmbiguity as e:
            logger.warning(f"Ignoring unrecognised playback payload: {e}")
        except AuthError as e:
            logger.warning(f"Poll rejected, waiting for token refresh: {e}")
        except TransportError as e:
            logger.warning(f"Poll failed: {e}")
        except StorageError as e:
            log_error(logger, JOB_NAME, e)
        except Exception as e:
            log_error(logger, JOB_NAME, e)
        self._count("failures")
        return None

    def _fire(self) -> None:
        if self._stopped.is_set():
            return
        try:
            self.poll_once()
        finally:
            self._arm(self.interval_s)

    def _arm(self, delay_s: float) -> None:
        if self._stopped.is_set():
            logger.debug("State poller stopped, not re-arming")
            return
        self.scheduler.schedule(JOB_NAME, self._fire, delay_s)
