"""
Append-only event log backed by SQLAlchemy
"""

import logging
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Column, MetaData, Table, Text, create_engine, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import StorageError
from .models import Event

logger = logging.getLogger(__name__)

metadata = MetaData()

# Column names match databases created by earlier releases
tracks = Table(
    "tracks",
    metadata,
    Column("songUri", Text, key="song_uri"),
    Column("playTime", BigInteger, key="play_time_ms"),
    Column("progress", BigInteger, key="progress_ms"),
    Column("device", Text, key="device"),
    Column("isShuffling", Boolean, key="is_shuffling"),
    Column("contextUri", Text, key="context_uri"),
)


class EventLog:
    """Write-only sink for playback events"""

    def __init__(self, database_url: str = "sqlite:///statify2.db", engine: Optional[Engine] = None):
        """
        Initialize the event log.

        Args:
            database_url: SQLAlchemy URL of the store
            engine: Pre-built engine (takes precedence over database_url)
        """
        self.engine = engine or create_engine(database_url, future=True, pool_pre_ping=True)
        logger.info(f"Event log using {self.engine.url.render_as_string(hide_password=True)}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(OperationalError)
    )
    def _create_schema(self) -> None:
        metadata.create_all(self.engine, checkfirst=True)

    def ensure_schema(self) -> None:
        """
        Create the tracks table if it does not exist. Safe to call on every start.

        Raises:
            StorageError: schema could not be created
        """
        try:
            self._create_schema()
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise StorageError(f"Could not create event log schema: {cause}") from cause
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create event log schema: {e}") from e
        logger.info("Event log schema ready")

    def append(self, event: Event) -> None:
        """
        Append one event. Every field is bound as a parameter.

        Raises:
            StorageError: the insert failed
        """
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(tracks),
                    {
                        "song_uri": event.song_uri,
                        "play_time_ms": event.play_time_ms,
                        "progress_ms": event.progress_ms,
                        "device": event.device,
                        "is_shuffling": event.is_shuffling,
                        "context_uri": event.context_uri,
                    }
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Could not append event for {event.song_uri}: {e}") from e

    def count(self) -> int:
        """Number of stored events"""
        try:
            with self.engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(tracks)).scalar_one()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not count events: {e}") from e

    def dispose(self) -> None:
        self.engine.dispose()
