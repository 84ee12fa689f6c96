from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Union

import structlog

from eventlog.core.config import settings
from eventlog.core.exceptions import (
    DecodeError,
    IngestionAborted,
    StorageError,
    StreamReadError,
)
from eventlog.schemas.event import Event
from eventlog.services.codec import decode_line
from eventlog.services.store import EventStore

logger = structlog.get_logger()


def _read_lines(lines: Iterable[str]) -> Iterator[str]:
    """Iterate the input, turning read failures into StreamReadError"""
    iterator = iter(lines)
    while True:
        try:
            line = next(iterator)
        except StopIteration:
            return
        except (OSError, UnicodeDecodeError) as e:
            raise StreamReadError(f"failed to read input: {e}") from e
        yield line


class IngestionService:
    """Service for ingesting event lines in bounded, transactional batches"""

    def __init__(
            self,
            store: EventStore,
            batch_size: Optional[int] = None,
            on_progress: Optional[Callable[[int], None]] = None
    ):
        self.store = store
        self.batch_size = settings.batch_size if batch_size is None else batch_size
        if self.batch_size < 1:
            raise ValueError(f"batch size must be at least 1, got {self.batch_size}")
        self.on_progress = on_progress

    def ingest(self, lines: Iterable[str]) -> int:
        """
        Decode and store every valid line.

        Blank lines are ignored. Lines that fail to decode are logged and
        skipped. Each full batch is committed in its own transaction, and
        the final partial batch is committed at end of input.

        Returns:
            number of events committed

        Raises:
            IngestionAborted: on a read or storage failure. The in-flight
                batch is discarded; batches committed earlier stay committed
                and are counted in ``committed``.
        """
        committed = 0
        skipped = 0
        batch: List[Event] = []

        try:
            for line_number, line in enumerate(_read_lines(lines), 1):
                text = line.rstrip("\r\n")
                if not text.strip():
                    continue

                try:
                    event = decode_line(text)
                except DecodeError as e:
                    skipped += 1
                    logger.warning(
                        "line_skipped",
                        line_number=line_number,
                        reason=e.reason,
                        line=e.line
                    )
                    continue

                batch.append(event)

                if len(batch) >= self.batch_size:
                    committed += self._commit(batch, committed)
                    batch = []

            if batch:
                committed += self._commit(batch, committed)
                batch = []

        except (StreamReadError, StorageError) as e:
            logger.error(
                "ingestion_aborted",
                committed=committed,
                discarded=len(batch),
                error=str(e)
            )
            raise IngestionAborted(str(e), committed) from e

        logger.info("ingestion_completed", committed=committed, skipped=skipped)
        return committed

    def ingest_file(self, path: Union[str, Path]) -> int:
        """Ingest a UTF-8 text file line by line"""
        try:
            handle = open(path, "r", encoding="utf-8")
        except OSError as e:
            raise IngestionAborted(f"failed to open file {path}: {e}", 0) from e

        with handle:
            return self.ingest(handle)

    def _commit(self, batch: List[Event], committed: int) -> int:
        inserted = self.store.insert_batch(batch)
        total = committed + inserted

        logger.info("batch_committed", size=inserted, total=total)
        if self.on_progress is not None:
            self.on_progress(total)

        return inserted
