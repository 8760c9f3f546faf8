"""
Statify Recorder

Poll a Spotify account's playback state and keep an append-only log of what
was playing, while keeping the OAuth access token fresh.
"""

__version__ = "1.0.0"
__author__ = "Statify"

from .agent import RecorderAgent
from .config import RecorderConfig
from .credentials import CredentialStore
from .event_log import EventLog
from .models import Credential, Event, PlaybackObservation
from .errors import AuthError, ClassificationAmbiguity, StatifyError, StorageError, TransportError

__all__ = [
    "RecorderAgent",
    "RecorderConfig",
    "CredentialStore",
    "EventLog",
    "Credential",
    "Event",
    "PlaybackObservation",
    "AuthError",
    "ClassificationAmbiguity",
    "StatifyError",
    "StorageError",
    "TransportError",
]
