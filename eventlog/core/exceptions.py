"""
Application-specific exceptions to keep error handling consistent.

Decode errors are per-line and recoverable: ingestion logs and skips them.
Everything else aborts the current operation and carries enough context
(line content, filter values, partial-progress counts) to diagnose it.
"""

from datetime import datetime


class EventLogError(Exception):
    """Base eventlog error."""
    pass


class DecodeError(EventLogError, ValueError):
    """Raised when a line cannot be decoded into an event."""

    def __init__(self, message: str, line: str):
        super().__init__(f"{message}: {line!r}")
        self.reason = message
        self.line = line


class MalformedLine(DecodeError):
    """Raised when a line does not split into exactly four fields."""
    pass


class InvalidTimestamp(DecodeError):
    """Raised when the timestamp field is not a canonical offset-qualified date-time."""
    pass


class InvalidUserID(DecodeError):
    """Raised when the user id field is not a 64-bit signed integer."""
    pass


class EmptyEventType(DecodeError):
    """Raised when the event type field is blank."""
    pass


class InvalidPayload(DecodeError):
    """Raised when the payload field is not valid JSON."""
    pass


class InvalidRange(EventLogError, ValueError):
    """Raised when a query's lower time bound is after its upper bound."""

    def __init__(self, from_time: datetime, to_time: datetime):
        super().__init__(
            f"from time {from_time.isoformat()} is after to time {to_time.isoformat()}"
        )
        self.from_time = from_time
        self.to_time = to_time


class StorageError(EventLogError):
    """Raised when the storage layer fails to begin, write or commit."""
    pass


class StreamReadError(EventLogError):
    """Raised when the input line stream cannot be read."""
    pass


class IngestionAborted(EventLogError):
    """Raised when ingestion stops on a fatal error."""

    def __init__(self, message: str, committed: int):
        super().__init__(f"{message} ({committed} events committed before failure)")
        self.committed = committed


class QueryAborted(EventLogError):
    """Raised when a query scan fails part way through."""

    def __init__(self, message: str, emitted: int):
        super().__init__(f"{message} ({emitted} events emitted before failure)")
        self.emitted = emitted
