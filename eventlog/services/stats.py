from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from eventlog.core.exceptions import StorageError
from eventlog.models.event import EventRecord
from eventlog.schemas.event import EventTypeCount, StatsResponse
from eventlog.services.store import EventStore
import structlog

logger = structlog.get_logger()


class StatsService:
    """Summary statistics over the stored events"""

    def __init__(self, store: EventStore):
        self.store = store

    def get_stats(self, limit: int = 10) -> StatsResponse:
        """Totals, distinct users, time range and the most frequent event types"""
        summary_query = select(
            func.count(EventRecord.id),
            func.count(distinct(EventRecord.user_id)),
            func.min(EventRecord.timestamp),
            func.max(EventRecord.timestamp)
        )

        top_query = (
            select(EventRecord.event_type, func.count().label("count"))
            .group_by(EventRecord.event_type)
            .order_by(func.count().desc(), EventRecord.event_type)
            .limit(limit)
        )

        try:
            with self.store.connect() as conn:
                total, users, first, last = conn.execute(summary_query).one()
                top = conn.execute(top_query).all()
        except SQLAlchemyError as e:
            raise StorageError(f"stats query failed: {e}") from e

        logger.info("stats_query", total_events=total, unique_users=users)

        return StatsResponse(
            total_events=total,
            unique_users=users,
            first_timestamp=first,
            last_timestamp=last,
            top_event_types=[
                EventTypeCount(event_type=row[0], count=row[1])
                for row in top
            ]
        )
