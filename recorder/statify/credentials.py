"""
Shared credential store and optional on-disk token cache
"""

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from .models import Credential

logger = logging.getLogger(__name__)

EMPTY_CREDENTIAL = Credential(access_token="", refresh_token="", expires_in_seconds=0, received_at=0.0)


class CredentialStore:
    """
    Holds the current credential as an immutable snapshot.

    The token refresher is the only writer; the poller reads before every
    remote call. Replacing the whole snapshot under a lock means readers never
    see a new access token paired with a stale refresh token.
    """

    def __init__(self, initial: Optional[Credential] = None):
        self._lock = threading.Lock()
        self._credential = initial or EMPTY_CREDENTIAL

    def get(self) -> Credential:
        with self._lock:
            return self._credential

    def set(self, credential: Credential) -> None:
        if not isinstance(credential, Credential):
            raise TypeError(f"Expected Credential, got {type(credential).__name__}")
        with self._lock:
            self._credential = credential

    @property
    def access_token(self) -> str:
        return self.get().access_token

    @property
    def is_populated(self) -> bool:
        """True once an access token has been stored"""
        return bool(self.get().access_token)


class TokenFile:
    """Persist the latest credential so a restart does not need a new code"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[Credential]:
        """Load the cached credential, or None if missing or unreadable"""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
            return Credential(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token") or "",
                expires_in_seconds=int(data.get("expires_in") or 0),
                received_at=float(data.get("received_at") or 0.0),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load token cache {self.path}: {e}")
            return None

    def save(self, credential: Credential) -> None:
        """Write the credential; failures are logged, not raised"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(credential.to_dict(), indent=2))
            tmp_path.chmod(0o600)
            tmp_path.replace(self.path)
            logger.debug(f"Persisted credential to {self.path}")
        except OSError as e:
            logger.warning(f"Failed to persist credential to {self.path}: {e}")
