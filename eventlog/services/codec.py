"""
Line codec for the event log.

Each event is one line of four fields separated by " | ":

    <RFC 3339 timestamp> | <int64 user_id> | <event_type> | <JSON payload>

Decoding validates every field and keeps the payload as the raw JSON text.
Encoding is the exact inverse for canonical input.
"""

import json
import re
from datetime import datetime, timedelta, timezone

from eventlog.core.exceptions import (
    EmptyEventType,
    InvalidPayload,
    InvalidTimestamp,
    InvalidUserID,
    MalformedLine,
)
from eventlog.schemas.event import INT64_MAX, INT64_MIN, Event

FIELD_SEPARATOR = " | "
FIELD_COUNT = 4

_TIMESTAMP_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.\d+)?(Z|[+-]\d{2}:\d{2})",
    re.ASCII
)
_USER_ID_RE = re.compile(r"[+-]?\d+", re.ASCII)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an offset-qualified RFC 3339 timestamp.

    Fractional seconds are accepted and dropped; the result has second
    precision and keeps the original UTC offset.
    """
    match = _TIMESTAMP_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    base, offset = match.groups()
    parsed = datetime.fromisoformat(base + offset.replace("Z", "+00:00"))

    # Stored and compared as UTC, which must stay within datetime range
    try:
        parsed.astimezone(timezone.utc)
    except OverflowError as e:
        raise ValueError(f"out of range in UTC: {value!r}") from e
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime in canonical form, writing a zero offset as Z"""
    offset = value.utcoffset()
    if offset is None:
        raise ValueError(f"timestamp has no UTC offset: {value!r}")

    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if not offset:
        return text + "Z"

    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(offset) // timedelta(minutes=1)
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def to_utc_text(value: datetime) -> str:
    """Canonical UTC text used for storage and range comparisons"""
    return format_timestamp(value.astimezone(timezone.utc))


def parse_user_id(value: str) -> int:
    """Parse a base-10, 64-bit signed integer"""
    if _USER_ID_RE.fullmatch(value) is None:
        raise ValueError(f"not an integer: {value!r}")

    user_id = int(value)
    if not INT64_MIN <= user_id <= INT64_MAX:
        raise ValueError(f"out of 64-bit range: {value!r}")
    return user_id


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def validate_payload(value: str) -> None:
    """Check that the payload is well-formed JSON without keeping the parsed value"""
    try:
        json.loads(value, parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError("payload nesting too deep") from e


def decode_line(line: str) -> Event:
    """
    Decode one canonical line into an Event.

    Raises:
        MalformedLine: the line does not have exactly four fields
        InvalidTimestamp, InvalidUserID, EmptyEventType, InvalidPayload:
            the matching field failed validation
    """
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != FIELD_COUNT:
        raise MalformedLine(
            f"expected {FIELD_COUNT} fields, got {len(fields)}", line
        )

    raw_timestamp, raw_user_id, event_type, payload = (f.strip() for f in fields)

    try:
        timestamp = parse_timestamp(raw_timestamp)
    except ValueError as e:
        raise InvalidTimestamp(f"invalid timestamp ({e})", line) from e

    try:
        user_id = parse_user_id(raw_user_id)
    except ValueError as e:
        raise InvalidUserID(f"invalid user id ({e})", line) from e

    if not event_type:
        raise EmptyEventType("empty event type", line)

    try:
        validate_payload(payload)
    except ValueError as e:
        raise InvalidPayload(f"invalid JSON payload ({e})", line) from e

    return Event(
        timestamp=timestamp,
        user_id=user_id,
        event_type=event_type,
        payload=payload
    )


def encode_event(event: Event) -> str:
    """Encode an Event as a canonical line (no trailing newline)"""
    return FIELD_SEPARATOR.join((
        format_timestamp(event.timestamp),
        str(event.user_id),
        event.event_type,
        event.payload,
    ))
