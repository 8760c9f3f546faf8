"""
Configuration models for the playback recorder
"""

from pydantic import BaseModel, Field
from typing import List, Optional
import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = [
    "user-read-recently-played",
    "user-read-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-library-read",
]


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


class SpotifyAuth(BaseModel):
    """Spotify API authentication configuration"""
    client_id: str = Field(default="", description="Spotify app client ID")
    client_secret: str = Field(default="", description="Spotify app client secret")
    redirect_uri: str = Field(default="http://localhost:8080/callback", description="OAuth redirect URI")
    access_code: Optional[str] = Field(None, description="One-time authorization code from the redirect")
    access_token: Optional[str] = Field(None, description="Pre-seeded access token")
    refresh_token: Optional[str] = Field(None, description="Pre-seeded refresh token")
    scopes: List[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES), description="Requested OAuth scopes")

    @classmethod
    def from_env(cls) -> "SpotifyAuth":
        """Create SpotifyAuth from environment variables"""
        return cls(
            client_id=os.getenv("SPOTIFY_CLIENT_ID", ""),
            client_secret=os.getenv("SPOTIFY_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI") or "http://localhost:8080/callback",
            access_code=_env_optional("SPOTIFY_ACCESS_CODE"),
            access_token=_env_optional("SPOTIFY_ACCESS_TOKEN"),
            refresh_token=_env_optional("SPOTIFY_REFRESH_TOKEN"),
        )

    @property
    def is_authorized(self) -> bool:
        """True when there is anything to build a credential from"""
        return bool(self.access_code or self.access_token or self.refresh_token)


class Timings(BaseModel):
    """Cadence of the two recurring tasks"""
    poll_interval_s: float = Field(default=60.0, ge=1.0, le=3600.0, description="Delay between polls")
    refresh_retry_s: float = Field(default=10.0, ge=1.0, le=600.0, description="Refresh retry delay after a failure")
    refresh_margin_ratio: float = Field(default=1.0, ge=0.5, le=1.0, description="Fraction of the token TTL to wait before refreshing")
    request_timeout_s: float = Field(default=10.0, ge=1.0, le=120.0, description="Timeout for every remote call")
    scheduler_workers: int = Field(default=2, ge=1, le=8, description="Scheduler thread pool size")

    @classmethod
    def from_env(cls) -> "Timings":
        """Create Timings from environment variables"""
        return cls(
            poll_interval_s=float(os.getenv("STATIFY_POLL_INTERVAL_S", "60")),
            refresh_retry_s=float(os.getenv("STATIFY_REFRESH_RETRY_S", "10")),
            refresh_margin_ratio=float(os.getenv("STATIFY_REFRESH_MARGIN", "1.0")),
            request_timeout_s=float(os.getenv("STATIFY_REQUEST_TIMEOUT_S", "10")),
            scheduler_workers=int(os.getenv("STATIFY_SCHEDULER_WORKERS", "2")),
        )


class StorageConfig(BaseModel):
    """Event log storage configuration"""
    database_url: str = Field(default="sqlite:///statify2.db", description="SQLAlchemy database URL")

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(database_url=os.getenv("STATIFY_DATABASE_URL") or "sqlite:///statify2.db")


class RecorderConfig(BaseModel):
    """Main configuration for the recorder process"""
    spotify: SpotifyAuth = Field(default_factory=SpotifyAuth, description="Spotify authentication")
    timings: Timings = Field(default_factory=Timings, description="Timing configuration")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Event log storage")
    token_cache: Optional[str] = Field(None, description="Optional JSON file the credential is persisted to")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(None, description="Optional log file path")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "RecorderConfig":
        """Create configuration from environment variables (and .env if present)"""
        load_dotenv(dotenv_path)
        return cls(
            spotify=SpotifyAuth.from_env(),
            timings=Timings.from_env(),
            storage=StorageConfig.from_env(),
            token_cache=_env_optional("STATIFY_TOKEN_CACHE"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            log_file=_env_optional("LOG_FILE"),
        )
