"""
Command line interface for the event log.

Usage:
    eventlog record <file>
    eventlog query <user-id> [--type=<event-type>] [--from=<RFC3339>] [--to=<RFC3339>]
    eventlog stats [--limit=<n>]

Examples:
    eventlog record events.txt
    eventlog query 42 --type=login
    eventlog query 42 --from=2023-08-14T12:00:00Z --to=2023-08-14T13:00:00Z
"""

import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import typer

from eventlog.core.config import settings
from eventlog.core.exceptions import (
    IngestionAborted,
    InvalidRange,
    QueryAborted,
    StorageError,
)
from eventlog.core.logging import configure_logging
from eventlog.schemas.event import QueryFilters
from eventlog.services.codec import encode_event, parse_timestamp, parse_user_id
from eventlog.services.filters import validate_filters
from eventlog.services.ingestion import IngestionService
from eventlog.services.query import QueryService
from eventlog.services.stats import StatsService
from eventlog.services.store import open_store

app = typer.Typer(
    help="Record line-oriented event logs and query them per user.",
    no_args_is_help=True,
    add_completion=False
)


@dataclass(frozen=True)
class CliConfig:
    """Global options shared by every subcommand"""

    database_url: str
    batch_size: int


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.2f}ms"
    return f"{seconds:.3f}s"


def _parse_bound(name: str, value: Optional[str]) -> Optional[datetime]:
    if value is None or not value.strip():
        return None
    try:
        return parse_timestamp(value.strip())
    except ValueError:
        _fail(f"Invalid {name} time format: {value}")


@app.callback()
def global_options(
        ctx: typer.Context,
        database_url: Optional[str] = typer.Option(
            None, "--db", help="SQLAlchemy database URL (default from EVENTLOG_DATABASE_URL)"
        ),
        batch_size: Optional[int] = typer.Option(
            None, "--batch-size", min=1, help="Events committed per transaction"
        )
):
    configure_logging(settings.log_level, settings.log_json)
    ctx.obj = CliConfig(
        database_url=database_url or settings.database_url,
        batch_size=batch_size or settings.batch_size
    )


@app.command()
def record(
        ctx: typer.Context,
        file: Path = typer.Argument(..., help="Event log file, one event per line")
):
    """Ingest an event log file."""
    config: CliConfig = ctx.obj

    if not file.is_file():
        _fail(f"File {file} does not exist")

    typer.echo(f"Recording events from {file}...")

    start = time.perf_counter()
    try:
        with open_store(config.database_url) as store:
            service = IngestionService(
                store,
                batch_size=config.batch_size,
                on_progress=lambda total: typer.echo(f"Processed {total} events...")
            )
            count = service.ingest_file(file)
    except (IngestionAborted, StorageError) as e:
        _fail(f"recording events failed: {e}")

    duration = time.perf_counter() - start
    typer.echo(f"Successfully recorded {count} events in {_format_duration(duration)}")


@app.command()
def query(
        ctx: typer.Context,
        user_id: str = typer.Argument(..., metavar="USER_ID"),
        event_type: str = typer.Option("", "--type", help="Only events of this type"),
        from_time: Optional[str] = typer.Option(None, "--from", help="Inclusive lower bound (RFC 3339)"),
        to_time: Optional[str] = typer.Option(None, "--to", help="Inclusive upper bound (RFC 3339)")
):
    """Print a user's events in timestamp order."""
    config: CliConfig = ctx.obj

    try:
        uid = parse_user_id(user_id.strip())
    except ValueError:
        _fail(f"Invalid user ID: {user_id}")

    filters = QueryFilters(
        event_type=event_type.strip(),
        from_time=_parse_bound("from", from_time),
        to_time=_parse_bound("to", to_time)
    )
    try:
        validate_filters(filters)
    except InvalidRange as e:
        _fail(f"invalid filters: {e}")

    start = time.perf_counter()
    try:
        with open_store(config.database_url) as store:
            results = QueryService(store).query(uid, filters)
            for event in results:
                typer.echo(encode_event(event))
    except (QueryAborted, StorageError) as e:
        _fail(f"querying events failed: {e}")

    duration = time.perf_counter() - start
    typer.echo(
        f"Query completed: {results.count} events in {_format_duration(duration)}",
        err=True
    )


@app.command()
def stats(
        ctx: typer.Context,
        limit: int = typer.Option(10, "--limit", min=1, max=100, help="Number of top event types")
):
    """Show totals, distinct users, time range and top event types."""
    config: CliConfig = ctx.obj

    try:
        with open_store(config.database_url) as store:
            result = StatsService(store).get_stats(limit=limit)
    except StorageError as e:
        _fail(f"reading stats failed: {e}")

    typer.echo("=" * 50)
    typer.echo(f"Total events: {result.total_events}")
    typer.echo(f"Unique users: {result.unique_users}")
    typer.echo(f"From: {result.first_timestamp or '-'}")
    typer.echo(f"To:   {result.last_timestamp or '-'}")
    for item in result.top_event_types:
        typer.echo(f"  {item.event_type}: {item.count}")
    typer.echo("=" * 50)


def main():
    app()


if __name__ == "__main__":
    main()
