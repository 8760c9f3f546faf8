"""
Data models and enums for the playback recorder
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, Union
import time


class RefresherState(Enum):
    """Token refresher state"""
    VALID = "VALID"
    REFRESHING = "REFRESHING"


@dataclass(frozen=True)
class Credential:
    """OAuth2 credential pair as last issued by the token endpoint"""
    access_token: str
    refresh_token: str
    expires_in_seconds: int = 0
    received_at: float = field(default_factory=time.time)

    @property
    def expires_at(self) -> float:
        return self.received_at + max(0, int(self.expires_in_seconds))

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        """Seconds until the access token expires (0 once expired)"""
        now = time.time() if now is None else now
        return max(0, int(self.expires_at - now))

    @classmethod
    def from_token_info(cls, token_info: Dict[str, Any], fallback_refresh_token: str = "") -> "Credential":
        """Create Credential from a spotipy token_info payload"""
        return cls(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token") or fallback_refresh_token,
            expires_in_seconds=int(token_info.get("expires_in") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in_seconds,
            "received_at": self.received_at,
        }


@dataclass(frozen=True)
class PlaybackObservation:
    """Snapshot of the account's current playback as returned by the API"""
    is_playing: bool
    item_uri: Optional[str]
    timestamp_ms: int
    progress_ms: int
    device_id: Optional[str]
    is_shuffling: bool
    context_uri: Optional[str] = None


@dataclass(frozen=True)
class Event:
    """One persisted "now playing" record"""
    song_uri: str
    play_time_ms: int
    progress_ms: int
    device: str
    is_shuffling: bool
    context_uri: str

    @classmethod
    def from_observation(cls, observation: PlaybackObservation) -> "Event":
        """Build an Event from a playing observation"""
        return cls(
            song_uri=observation.item_uri or "",
            play_time_ms=observation.timestamp_ms,
            progress_ms=observation.progress_ms,
            device=observation.device_id or "",
            is_shuffling=observation.is_shuffling,
            context_uri=observation.context_uri or "",
        )


@dataclass(frozen=True)
class NoChange:
    """API returned no payload"""


@dataclass(frozen=True)
class NotPlaying:
    """Payload present but nothing is playing"""
    observation: PlaybackObservation


@dataclass(frozen=True)
class Playing:
    """Payload present and a track is playing"""
    observation: PlaybackObservation


PollOutcome = Union[NoChange, NotPlaying, Playing]


def classify(observation: Optional[PlaybackObservation]) -> PollOutcome:
    """Classify a remote playback result into a poll outcome"""
    if observation is None:
        return NoChange()
    if not observation.is_playing or not observation.item_uri:
        return NotPlaying(observation)
    return Playing(observation)


@dataclass
class PollStats:
    """Counters for poll outcomes"""
    polls: int = 0
    appended: int = 0
    no_change: int = 0
    not_playing: int = 0
    skipped: int = 0
    failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "polls": self.polls,
            "appended": self.appended,
            "no_change": self.no_change,
            "not_playing": self.not_playing,
            "skipped": self.skipped,
            "failures": self.failures,
        }
