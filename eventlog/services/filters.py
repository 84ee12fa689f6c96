"""
Query filter validation and predicate building.

A query is an ordered list of predicates over the stored event columns:
the user id match is always first, then the optional event type match and
the inclusive time bounds. The same predicates compile to SQL clauses and
evaluate against plain rows, so filter semantics can be checked without a
database.
"""

import operator
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, List, Mapping

from sqlalchemy import and_
from sqlalchemy.sql import ColumnElement

from eventlog.core.exceptions import InvalidRange
from eventlog.models.event import EventRecord
from eventlog.schemas.event import QueryFilters
from eventlog.services.codec import to_utc_text

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ge": operator.ge,
    "le": operator.le,
}


def validate_filters(filters: QueryFilters) -> None:
    """Raise InvalidRange if both bounds are set and from is after to"""
    if (
        filters.from_time is not None
        and filters.to_time is not None
        and filters.from_time > filters.to_time
    ):
        raise InvalidRange(filters.from_time, filters.to_time)


@dataclass(frozen=True)
class Predicate:
    """A single comparison against one column of the events table"""

    column: str
    op: str
    value: Any

    def clause(self) -> ColumnElement[bool]:
        return _OPERATORS[self.op](getattr(EventRecord, self.column), self.value)

    def matches(self, row: Mapping[str, Any]) -> bool:
        """Evaluate against a plain row mapping, without a database"""
        return bool(_OPERATORS[self.op](row[self.column], self.value))


def build_predicates(user_id: int, filters: QueryFilters) -> List[Predicate]:
    """Build the predicates for a query, user id first"""
    predicates = [Predicate("user_id", "eq", user_id)]

    if filters.event_type:
        predicates.append(Predicate("event_type", "eq", filters.event_type))

    if filters.from_time is not None:
        lower = filters.from_time
        # Stored timestamps have second precision
        if lower.microsecond:
            lower = lower.replace(microsecond=0) + timedelta(seconds=1)
        predicates.append(Predicate("timestamp", "ge", to_utc_text(lower)))

    if filters.to_time is not None:
        predicates.append(Predicate("timestamp", "le", to_utc_text(filters.to_time)))

    return predicates


def combine(predicates: List[Predicate]) -> ColumnElement[bool]:
    """AND all predicates into one WHERE clause"""
    return and_(*(p.clause() for p in predicates))
