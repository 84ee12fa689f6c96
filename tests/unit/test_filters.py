from datetime import datetime, timedelta, timezone

import pytest

from eventlog.core.exceptions import InvalidRange
from eventlog.schemas.event import QueryFilters
from eventlog.services.codec import parse_timestamp
from eventlog.services.filters import Predicate, build_predicates, combine, validate_filters

T0 = parse_timestamp("2023-08-14T10:00:00Z")
T1 = parse_timestamp("2023-08-14T12:00:00Z")


def test_empty_filters_are_valid():
    filters = QueryFilters()

    validate_filters(filters)
    assert filters.is_empty


@pytest.mark.parametrize("filters", [
    QueryFilters(from_time=T0),
    QueryFilters(to_time=T1),
    QueryFilters(from_time=T0, to_time=T1),
    QueryFilters(from_time=T0, to_time=T0),
    QueryFilters(event_type="login"),
])
def test_well_ordered_filters_are_valid(filters):
    validate_filters(filters)


def test_reversed_range_is_rejected():
    with pytest.raises(InvalidRange) as exc_info:
        validate_filters(QueryFilters(from_time=T1, to_time=T0))

    assert exc_info.value.from_time == T1
    assert exc_info.value.to_time == T0
    assert "2023-08-14T12:00:00" in str(exc_info.value)


def test_reversed_range_compares_instants_not_text():
    # 11:00+02:00 is 09:00Z, which is before 10:00Z
    early = parse_timestamp("2023-08-14T11:00:00+02:00")
    validate_filters(QueryFilters(from_time=early, to_time=T0))

    with pytest.raises(InvalidRange):
        validate_filters(QueryFilters(from_time=T0, to_time=early))


def test_filters_accept_from_and_to_aliases():
    filters = QueryFilters.model_validate({"from": T0, "to": T1, "event_type": "login"})

    assert filters.from_time == T0
    assert filters.to_time == T1
    assert not filters.is_empty


def test_user_predicate_is_always_first():
    assert build_predicates(42, QueryFilters()) == [Predicate("user_id", "eq", 42)]


def test_all_predicates_in_order():
    predicates = build_predicates(42, QueryFilters(event_type="login", from_time=T0, to_time=T1))

    assert predicates == [
        Predicate("user_id", "eq", 42),
        Predicate("event_type", "eq", "login"),
        Predicate("timestamp", "ge", "2023-08-14T10:00:00Z"),
        Predicate("timestamp", "le", "2023-08-14T12:00:00Z"),
    ]


def test_bounds_are_normalized_to_utc():
    bound = parse_timestamp("2023-08-14T12:00:00+02:00")
    predicates = build_predicates(1, QueryFilters(from_time=bound))

    assert predicates[-1] == Predicate("timestamp", "ge", "2023-08-14T10:00:00Z")


def test_fractional_lower_bound_rounds_up():
    bound = datetime(2023, 8, 14, 10, 0, 0, 500000, tzinfo=timezone.utc)
    predicates = build_predicates(1, QueryFilters(from_time=bound, to_time=bound + timedelta(hours=1)))

    assert predicates[1].value == "2023-08-14T10:00:01Z"
    assert predicates[2].value == "2023-08-14T11:00:00Z"


def test_predicates_evaluate_against_rows():
    predicates = build_predicates(42, QueryFilters(event_type="login", from_time=T0, to_time=T1))
    rows = [
        {"user_id": 42, "event_type": "login", "timestamp": "2023-08-14T10:00:00Z"},
        {"user_id": 42, "event_type": "login", "timestamp": "2023-08-14T12:00:00Z"},
        {"user_id": 42, "event_type": "login", "timestamp": "2023-08-14T12:00:01Z"},
        {"user_id": 42, "event_type": "logout", "timestamp": "2023-08-14T11:00:00Z"},
        {"user_id": 43, "event_type": "login", "timestamp": "2023-08-14T11:00:00Z"},
    ]

    matched = [row for row in rows if all(p.matches(row) for p in predicates)]

    assert matched == rows[:2]


def test_combined_clause_renders_every_predicate():
    clause = combine(build_predicates(42, QueryFilters(event_type="login", to_time=T1)))
    sql = str(clause.compile(compile_kwargs={"literal_binds": True}))

    assert "events.user_id = 42" in sql
    assert "events.event_type = 'login'" in sql
    assert "<= '2023-08-14T12:00:00Z'" in sql
