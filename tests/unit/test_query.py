import pytest
from sqlalchemy import insert
from structlog.testing import capture_logs

from eventlog.core.exceptions import InvalidRange, QueryAborted
from eventlog.models.event import EventRecord
from eventlog.schemas.event import QueryFilters
from eventlog.services.codec import encode_event, parse_timestamp
from eventlog.services.ingestion import IngestionService
from eventlog.services.query import QueryService

LINES = [
    '2023-08-14T12:30:00Z | 42 | purchase | {"item":"A123","price":9.5}',
    '2023-08-14T10:00:00Z | 42 | login | {"ip":"10.0.0.1"}',
    '2023-08-14T13:00:00+02:00 | 42 | page_view | {"page":"/home"}',
    '2023-08-14T11:00:00Z | 7 | login | {"ip":"10.0.0.2"}',
    '2023-08-14T12:00:00Z | 42 | login | {"ip":"10.0.0.3"}',
    '2023-08-14T14:00:00Z | 42 | logout | {}',
]


@pytest.fixture
def populated(store):
    IngestionService(store, batch_size=2).ingest(LINES)
    return store


def test_single_login_is_returned_as_recorded(store):
    line = '2023-08-14T10:00:00Z | 42 | login | {"ip":"10.0.0.1"}'
    IngestionService(store).ingest([line])

    results = QueryService(store).query(42, QueryFilters(event_type="login"))
    events = list(results)

    assert [encode_event(e) for e in events] == [line]
    assert results.count == 1


def test_unknown_user_returns_nothing(populated):
    results = QueryService(populated).query(999)

    assert list(results) == []
    assert results.count == 0


def test_results_are_ordered_by_instant(populated):
    events = list(QueryService(populated).query(42))

    instants = [e.timestamp for e in events]
    assert instants == sorted(instants)
    assert [e.event_type for e in events] == ["login", "page_view", "login", "purchase", "logout"]


def test_results_only_include_requested_user(populated):
    events = list(QueryService(populated).query(7))

    assert len(events) == 1
    assert all(e.user_id == 7 for e in events)


def test_type_filter(populated):
    events = list(QueryService(populated).query(42, QueryFilters(event_type="login")))

    assert [e.payload for e in events] == ['{"ip":"10.0.0.1"}', '{"ip":"10.0.0.3"}']


def test_time_bounds_are_inclusive(populated):
    filters = QueryFilters(
        from_time=parse_timestamp("2023-08-14T12:00:00Z"),
        to_time=parse_timestamp("2023-08-14T12:30:00Z")
    )

    events = list(QueryService(populated).query(42, filters))

    assert [e.event_type for e in events] == ["login", "purchase"]


def test_bounds_with_offsets_compare_instants(populated):
    # 13:00+02:00 is stored as 11:00Z
    filters = QueryFilters(
        from_time=parse_timestamp("2023-08-14T13:00:00+02:00"),
        to_time=parse_timestamp("2023-08-14T13:00:00+02:00")
    )

    events = list(QueryService(populated).query(42, filters))

    assert [e.event_type for e in events] == ["page_view"]
    assert encode_event(events[0]) == '2023-08-14T11:00:00Z | 42 | page_view | {"page":"/home"}'


def test_reversed_range_fails_before_storage_access():
    filters = QueryFilters(
        from_time=parse_timestamp("2023-08-14T13:00:00Z"),
        to_time=parse_timestamp("2023-08-14T12:00:00Z")
    )

    with pytest.raises(InvalidRange):
        QueryService(store=None).query(42, filters)


def test_query_can_be_reissued(populated):
    results = QueryService(populated).query(42, QueryFilters(event_type="login"))

    first = list(results)
    second = list(results)

    assert first == second
    assert results.count == 2


def test_partially_consumed_query_closes_cleanly(populated):
    results = QueryService(populated).query(42)
    iterator = iter(results)

    next(iterator)
    iterator.close()

    assert results.count == 1


def test_corrupt_stored_timestamp_aborts_with_emitted_count(populated):
    with populated.engine.begin() as conn:
        conn.execute(insert(EventRecord), [{
            "user_id": 42,
            "timestamp": "yesterday",
            "event_type": "login",
            "payload": "{}"
        }])

    results = QueryService(populated).query(42)
    emitted = []

    with capture_logs() as logs:
        with pytest.raises(QueryAborted) as exc_info:
            for event in results:
                emitted.append(event)

    assert len(emitted) == 5
    assert exc_info.value.emitted == 5
    assert "yesterday" in str(exc_info.value)

    aborted = [entry for entry in logs if entry["event"] == "query_aborted"]
    assert len(aborted) == 1
    assert aborted[0]["log_level"] == "error"
    assert aborted[0]["emitted"] == 5
