"""
Composition root wiring the credential store, refresher, poller and event log
"""

import logging
import signal
import threading
from typing import Any, Dict, Optional

from .bootstrap import BootstrapResult
from .config import RecorderConfig
from .credentials import CredentialStore, TokenFile
from .event_log import EventLog
from .poller import StatePoller
from .refresher import TokenRefresher
from .scheduler import Scheduler
from .spotify_api import SpotifyRemote

logger = logging.getLogger(__name__)


class RecorderAgent:
    """Runs the token refresher and the state poller until told to stop"""

    def __init__(self, cfg: RecorderConfig, remote: SpotifyRemote, event_log: EventLog,
                 scheduler: Scheduler, token_file: Optional[TokenFile] = None):
        """
        Initialize the agent.

        Args:
            cfg: Recorder configuration
            remote: Remote API collaborator
            event_log: Event sink
            scheduler: Timer shared by both recurring tasks
            token_file: Optional credential cache updated after each refresh
        """
        self.cfg = cfg
        self.remote = remote
        self.event_log = event_log
        self.scheduler = scheduler
        self.token_file = token_file
        self.store = CredentialStore()
        self.refresher = TokenRefresher(
            self.store,
            remote.refresh_access_token,
            scheduler,
            retry_delay_s=cfg.timings.refresh_retry_s,
            margin_ratio=cfg.timings.refresh_margin_ratio,
            on_refreshed=token_file.save if token_file is not None else None,
        )
        self.poller = StatePoller(
            self.store,
            remote.get_current_playback,
            event_log,
            scheduler,
            interval_s=cfg.timings.poll_interval_s,
        )
        self._shutdown = threading.Event()
        self._stopped = False

    def start(self, seed: BootstrapResult) -> None:
        """
        Seed the store and arm both tasks.

        Raises:
            StorageError: the event log schema could not be created
        """
        logger.info(f"Starting recorder (credential source: {seed.source})")
        self.store.set(seed.credential)
        self.refresher.start(seed.initial_refresh_delay_s)

        try:
            self.event_log.ensure_schema()
        except Exception:
            logger.error("Event log unavailable, aborting startup")
            self.refresher.stop()
            self.scheduler.shutdown(wait=False)
            raise

        self.scheduler.start()
        self.poller.start(0.0)
        logger.info("Recorder started")

    def status(self) -> Dict[str, Any]:
        credential = self.store.get()
        return {
            "refresher_state": self.refresher.state.value,
            "next_refresh_in_s": self.refresher.last_delay_s,
            "token_expires_in_s": credential.remaining_seconds() if credential.access_token else None,
            "poll_stats": self.poller.stats.to_dict(),
        }

    def request_shutdown(self, signum: Optional[int] = None, frame: Any = None) -> None:
        if signum is not None:
            logger.info(f"Received signal {signum}, shutting down")
        self._shutdown.set()

    def run_forever(self) -> None:
        """Block until SIGINT/SIGTERM (or request_shutdown), then shut down"""
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self.request_shutdown)
            signal.signal(signal.SIGTERM, self.request_shutdown)
        try:
            while not self._shutdown.wait(timeout=1.0):
                pass
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop re-arming, let in-flight firings finish, release storage and HTTP session"""
        if self._stopped:
            return
        self._stopped = True
        self.refresher.stop()
        self.poller.stop()
        self.scheduler.shutdown(wait=True)
        self.event_log.dispose()
        self.remote.close()
        logger.info(f"Recorder stopped: {self.poller.stats.to_dict()}")
