# DB connections

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from eventlog.core.config import settings


def create_sync_engine(database_url: str | None = None, echo: bool | None = None) -> Engine:
    """Create a sync engine, applying the configured pragmas on SQLite connections"""
    url = make_url(database_url or settings.database_url)
    engine = create_engine(
        url,
        echo=settings.debug if echo is None else echo
    )

    if url.get_backend_name() == "sqlite":
        pragmas = dict(settings.sqlite_pragmas)
        # WAL is not available for in-memory databases
        if not url.database or url.database == ":memory:":
            pragmas.pop("journal_mode", None)

        @event.listens_for(engine, "connect")
        def _apply_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            try:
                for name, value in pragmas.items():
                    cursor.execute(f"PRAGMA {name} = {value}")
            finally:
                cursor.close()

    return engine
