from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import structlog
from sqlalchemy import insert
from sqlalchemy.engine import Connection, Row
from sqlalchemy.exc import SQLAlchemyError

from eventlog.core.database import create_sync_engine
from eventlog.core.exceptions import StorageError
from eventlog.models.event import Base, EventRecord
from eventlog.schemas.event import Event
from eventlog.services.codec import parse_timestamp, to_utc_text

logger = structlog.get_logger()


def event_to_row(event: Event) -> dict[str, Any]:
    return {
        "user_id": event.user_id,
        "timestamp": to_utc_text(event.timestamp),
        "event_type": event.event_type,
        "payload": event.payload
    }


def row_to_event(row: Row) -> Event:
    """Rebuild an Event from a stored row. Raises ValueError on a corrupt timestamp."""
    return Event(
        timestamp=parse_timestamp(row.timestamp),
        user_id=row.user_id,
        event_type=row.event_type,
        payload=row.payload
    )


class EventStore:
    """
    Storage session for the events table.

    Owns the engine (and its connection pool) for the lifetime of one
    record/query/stats invocation. Use open_store() or the store as a
    context manager so close() runs on every exit path.
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        try:
            self.engine = create_sync_engine(database_url, echo)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to create engine: {e}") from e

    def initialize(self) -> None:
        """Create the events table and its indexes if missing"""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to initialize schema: {e}") from e

        logger.debug("store_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def insert_batch(self, events: Sequence[Event]) -> int:
        """Insert events in a single transaction. All or nothing."""
        rows = [event_to_row(event) for event in events]
        if not rows:
            return 0

        try:
            with self.engine.begin() as conn:
                conn.execute(insert(EventRecord), rows)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to commit batch of {len(rows)} events: {e}") from e

        return len(rows)

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Read connection, returned to the pool on exit"""
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to connect: {e}") from e

        with conn:
            yield conn

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "EventStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@contextmanager
def open_store(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Iterator[EventStore]:
    """Open and initialize a store, always disposing it afterwards"""
    with EventStore(database_url, echo) as store:
        store.initialize()
        yield store
