"""
Self-rescheduling access token refresher
"""

import logging
import threading
from typing import Callable, Optional

from .credentials import CredentialStore
from .errors import AuthError, TransportError
from .logging_utils import log_error, log_refresh
from .models import Credential, RefresherState
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

JOB_NAME = "refresh-token"


class TokenRefresher:
    """
    Keeps the access credential valid for the life of the process.

    Each firing exchanges the refresh token for a new access token and arms the
    next firing: after the server-declared lifetime on success, after
    ``retry_delay_s`` on any failure. The stored credential is only replaced by
    a complete, successful response.
    """

    def __init__(self, store: CredentialStore, refresh: Callable[[str], Credential],
                 scheduler: Scheduler, retry_delay_s: float = 10.0,
                 margin_ratio: float = 1.0,
                 on_refreshed: Optional[Callable[[Credential], None]] = None):
        """
        Args:
            store: Shared credential store (this refresher is its only writer)
            refresh: Remote refresh call, refresh token -> Credential
            scheduler: Timer used to arm the next firing
            retry_delay_s: Delay before retrying after a failed refresh
            margin_ratio: Fraction of the token lifetime to wait before refreshing
            on_refreshed: Optional callback run after a successful refresh
        """
        self.store = store
        self._refresh = refresh
        self.scheduler = scheduler
        self.retry_delay_s = retry_delay_s
        self.margin_ratio = margin_ratio
        self._on_refreshed = on_refreshed
        self._state = RefresherState.VALID
        self._state_lock = threading.Lock()
        self._stopped = threading.Event()
        self.last_delay_s: Optional[float] = None

    @property
    def state(self) -> RefresherState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: RefresherState) -> None:
        with self._state_lock:
            self._state = state

    def start(self, initial_delay_s: float = 0.0) -> None:
        """Arm the first firing"""
        self._stopped.clear()
        logger.info(f"Token refresher starting, first refresh in {initial_delay_s:.0f}s")
        self._arm(initial_delay_s)

    def stop(self) -> None:
        """Stop re-arming; a firing already in flight completes"""
        self._stopped.set()

    def next_delay(self, credential: Credential) -> float:
        """Seconds until the refresh after a successful one"""
        delay = credential.expires_in_seconds * self.margin_ratio
        if delay <= 0:
            logger.warning(f"Server declared no token lifetime, retrying in {self.retry_delay_s:.0f}s")
            return self.retry_delay_s
        return delay

    def refresh_once(self) -> float:
        """
        Perform one refresh and return the delay until the next one.

        Never raises: every failure maps to the retry delay.
        """
        self._set_state(RefresherState.REFRESHING)
        current = self.store.get()
        try:
            issued = self._refresh(current.refresh_token)
            credential = Credential(
                access_token=issued.access_token,
                refresh_token=issued.refresh_token or current.refresh_token,
                expires_in_seconds=issued.expires_in_seconds,
                received_at=issued.received_at,
            )
            self.store.set(credential)
            delay = self.next_delay(credential)
            log_refresh(logger, True, delay, expires_in=credential.expires_in_seconds)
        except (AuthError, TransportError) as e:
            delay = self.retry_delay_s
            log_refresh(logger, False, delay, error=str(e))
            return delay
        except Exception as e:
            delay = self.retry_delay_s
            log_error(logger, JOB_NAME, e)
            log_refresh(logger, False, delay)
            return delay
        finally:
            self._set_state(RefresherState.VALID)

        if self._on_refreshed is not None:
            try:
                self._on_refreshed(credential)
            except Exception as e:
                log_error(logger, f"{JOB_NAME} callback", e)
        return delay

    def _fire(self) -> None:
        if self._stopped.is_set():
            return
        delay = self.retry_delay_s
        try:
            delay = self.refresh_once()
        finally:
            self._arm(delay)

    def _arm(self, delay_s: float) -> None:
        if self._stopped.is_set():
            logger.debug("Token refresher stopped, not re-arming")
            return
        self.last_delay_s = delay_s
        self.scheduler.schedule(JOB_NAME, self._fire, delay_s)
