from typing import Iterator, List

import structlog
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError

from eventlog.core.exceptions import QueryAborted, StorageError
from eventlog.models.event import EventRecord
from eventlog.schemas.event import Event, QueryFilters
from eventlog.services.filters import Predicate, build_predicates, combine, validate_filters
from eventlog.services.store import EventStore, row_to_event

logger = structlog.get_logger()


def build_statement(predicates: List[Predicate]) -> Select:
    """SELECT the event columns matching every predicate, oldest first"""
    return (
        select(
            EventRecord.timestamp,
            EventRecord.user_id,
            EventRecord.event_type,
            EventRecord.payload
        )
        .where(combine(predicates))
        .order_by(EventRecord.timestamp)
    )


class EventQuery:
    """
    Lazy, ordered result of a per-user query.

    Iterating runs the scan and yields events in ascending timestamp order;
    ``count`` is the number yielded so far. Iterating again reissues the
    query from the start.
    """

    def __init__(self, store: EventStore, user_id: int, filters: QueryFilters):
        self.store = store
        self.user_id = user_id
        self.filters = filters
        self.predicates = build_predicates(user_id, filters)
        self.count = 0

    def __iter__(self) -> Iterator[Event]:
        self.count = 0
        statement = build_statement(self.predicates)

        try:
            with self.store.connect() as conn:
                for row in conn.execute(statement):
                    try:
                        event = row_to_event(row)
                    except ValueError as e:
                        logger.error(
                            "query_aborted",
                            user_id=self.user_id,
                            emitted=self.count,
                            error=f"corrupt stored timestamp {row.timestamp!r}"
                        )
                        raise QueryAborted(
                            f"corrupt stored event {row.timestamp!r}: {e}", self.count
                        ) from e

                    self.count += 1
                    yield event
        except (SQLAlchemyError, StorageError) as e:
            logger.error("query_aborted", user_id=self.user_id, emitted=self.count, error=str(e))
            raise QueryAborted(f"query failed: {e}", self.count) from e

        logger.info(
            "query_completed",
            user_id=self.user_id,
            filtered=not self.filters.is_empty,
            event_type=self.filters.event_type or None,
            count=self.count
        )


class QueryService:
    """Service for per-user, time-ordered event retrieval"""

    def __init__(self, store: EventStore):
        self.store = store

    def query(self, user_id: int, filters: QueryFilters | None = None) -> EventQuery:
        """
        Build a lazy query for one user's events.

        Raises:
            InvalidRange: before any storage access, if the filters' bounds are reversed
        """
        filters = filters or QueryFilters()
        validate_filters(filters)
        return EventQuery(self.store, user_id, filters)
