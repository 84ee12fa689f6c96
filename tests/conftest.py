import pytest
import structlog

from eventlog.services.store import open_store


@pytest.fixture(autouse=True)
def reset_structlog():
    """CLI runs bind structlog to a captured stderr; undo that between tests"""
    yield
    structlog.reset_defaults()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
def store(database_url):
    with open_store(database_url) as store:
        yield store


@pytest.fixture
def write_log(tmp_path):
    """Write lines to an event log file and return its path"""

    def _write(lines, name="events.txt"):
        path = tmp_path / name
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    return _write
