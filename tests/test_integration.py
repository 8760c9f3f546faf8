#!/usr/bin/env python3
"""
Integration tests for the Statify recorder
"""

import os
import sys
import tempfile
import threading
import unittest
from unittest.mock import Mock
from pathlib import Path

# Add package directory to path (use relative paths)
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root / 'recorder'))

from statify.agent import RecorderAgent
from statify.bootstrap import BootstrapResult
from statify.config import RecorderConfig, Timings
from statify.credentials import TokenFile
from statify.errors import StorageError
from statify.event_log import EventLog
from statify.models import Credential, PlaybackObservation
from statify.poller import JOB_NAME as POLL_JOB
from statify.refresher import JOB_NAME as REFRESH_JOB
from statify.scheduler import ApschedulerScheduler, Scheduler


class RecordingScheduler(Scheduler):
    """Collects timers instead of running them"""

    def __init__(self):
        self.pending = []
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def schedule(self, name, func, delay_s):
        self.pending.append((name, func, delay_s))

    def shutdown(self, wait=True):
        self.stopped = True

    def fire(self, name):
        for index, (job_name, func, _) in enumerate(self.pending):
            if job_name == name:
                del self.pending[index]
                func()
                return
        raise AssertionError(f"No pending timer named {name}")


PLAYING = PlaybackObservation(
    is_playing=True,
    item_uri="spotify:track:abc",
    timestamp_ms=1000,
    progress_ms=1500,
    device_id="dev1",
    is_shuffling=False,
    context_uri=None,
)


class TestRecorderIntegration(unittest.TestCase):
    """Agent wiring with a real event log and a fake remote"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.config = RecorderConfig(timings=Timings(poll_interval_s=60, refresh_retry_s=10))
        self.event_log = EventLog(f"sqlite:///{os.path.join(self.tmp.name, 'statify.db')}")
        self.scheduler = RecordingScheduler()
        self.remote = Mock()
        self.remote.get_current_playback.return_value = PLAYING
        self.remote.refresh_access_token.return_value = Credential("refreshed", "refresh", 3600)
        self.token_file = TokenFile(os.path.join(self.tmp.name, "token.json"))
        self.agent = RecorderAgent(self.config, self.remote, self.event_log, self.scheduler, self.token_file)

    def tearDown(self):
        self.agent.shutdown()
        self.tmp.cleanup()

    def _seed(self, delay=3600):
        return BootstrapResult(Credential("first", "refresh", 3600), delay, "test")

    def test_start_arms_refresher_then_poller(self):
        self.agent.start(self._seed(3600))

        self.assertTrue(self.scheduler.started)
        self.assertEqual(
            [(name, delay) for name, _, delay in self.scheduler.pending],
            [(REFRESH_JOB, 3600), (POLL_JOB, 0.0)],
        )
        self.assertEqual(self.event_log.count(), 0)

    def test_poll_then_refresh_then_poll(self):
        self.agent.start(self._seed())

        self.scheduler.fire(POLL_JOB)
        self.scheduler.fire(REFRESH_JOB)
        self.scheduler.fire(POLL_JOB)

        tokens = [c.args[0] for c in self.remote.get_current_playback.call_args_list]
        self.assertEqual(tokens, ["first", "refreshed"])
        self.assertEqual(self.event_log.count(), 2)
        self.assertEqual(self.token_file.load().access_token, "refreshed")

        status = self.agent.status()
        self.assertEqual(status["poll_stats"]["appended"], 2)
        self.assertEqual(status["next_refresh_in_s"], 3600)

    def test_refresh_failure_keeps_polling_with_old_token(self):
        self.remote.refresh_access_token.side_effect = ConnectionError("down")
        self.agent.start(self._seed(0))

        self.scheduler.fire(REFRESH_JOB)
        self.scheduler.fire(POLL_JOB)

        self.assertEqual(self.remote.get_current_playback.call_args.args[0], "first")
        self.assertIn((REFRESH_JOB, 10), [(n, d) for n, _, d in self.scheduler.pending])

    def test_schema_failure_aborts_startup(self):
        broken_log = Mock()
        broken_log.ensure_schema.side_effect = StorageError("unable to open database file")
        agent = RecorderAgent(self.config, self.remote, broken_log, self.scheduler)

        with self.assertRaises(StorageError):
            agent.start(self._seed())

        self.assertTrue(self.scheduler.stopped)
        self.assertNotIn(POLL_JOB, [name for name, _, _ in self.scheduler.pending])

    def test_shutdown_stops_rearming(self):
        self.agent.start(self._seed())
        self.agent.shutdown()

        self.scheduler.fire(POLL_JOB)
        self.scheduler.fire(REFRESH_JOB)

        self.assertEqual(self.scheduler.pending, [])
        self.remote.get_current_playback.assert_not_called()
        self.assertTrue(self.scheduler.stopped)


class TestApschedulerBackend(unittest.TestCase):
    """The real timer backend fires one-shot jobs"""

    def test_schedule_fires(self):
        scheduler = ApschedulerScheduler(workers=1)
        fired = threading.Event()
        scheduler.start()
        try:
            scheduler.schedule("probe", fired.set, 0.05)
            self.assertTrue(fired.wait(timeout=5))
        finally:
            scheduler.shutdown()

    def test_job_can_rearm_itself(self):
        scheduler = ApschedulerScheduler(workers=1)
        runs = []
        done = threading.Event()

        def job():
            runs.append(1)
            if len(runs) < 3:
                scheduler.schedule("again", job, 0.01)
            else:
                done.set()

        scheduler.start()
        try:
            scheduler.schedule("again", job, 0)
            self.assertTrue(done.wait(timeout=5))
        finally:
            scheduler.shutdown()
        self.assertEqual(len(runs), 3)


if __name__ == "__main__":
    unittest.main(verbosity=2)
