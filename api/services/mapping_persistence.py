# api/services/mapping_persistence.py
"""
Persistence gateway for accepted mappings and review suggestions.

Rows are written in chunks of BATCH_SIZE, each chunk in its own transaction
and bounded by BATCH_WRITE_TIMEOUT_SECONDS. A chunk that fails or times out
is recorded per label and the remaining chunks are still written; nothing
here raises to the caller.

A timed-out chunk is cancelled through its ChunkWriteGuard: the write thread
rolls back instead of committing, so a label reported as failed is never
also present in the database.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from config import AppConfig
from api.services.service_mapping_errors import PersistenceFailure, WriteCancelled
from api.services.service_mapping_types import (
    FailedWrite,
    ServiceMappingRecord,
    ServiceMappingSuggestionRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ChunkWriteGuard:
    """
    Decides, under one lock, whether a chunk commits or is cancelled.

    The writer wraps its commit in `committing()`; the gateway calls
    `cancel()` once it stops waiting. Whichever comes first wins.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.cancelled = False
        self.committed = False

    @contextmanager
    def committing(self):
        with self._lock:
            if self.cancelled:
                raise WriteCancelled()
            yield
            self.committed = True

    def cancel(self) -> bool:
        """True if the write was stopped before committing"""
        with self._lock:
            if self.committed:
                return False
            self.cancelled = True
            return True


class MappingPersistenceGateway:
    """Idempotent, partial-failure tolerant writer for mapping results"""

    MAPPING_TABLE = "service_mapping"
    SUGGESTION_TABLE = "service_mapping_suggestions"

    def __init__(self, database, batch_size: Optional[int] = None, timeout_seconds: Optional[float] = None):
        self.database = database
        self.batch_size = batch_size if batch_size is not None else AppConfig.BATCH_SIZE
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else AppConfig.BATCH_WRITE_TIMEOUT_SECONDS
        self.stats = {
            'mappings_written': 0,
            'suggestions_written': 0,
            'chunks_failed': 0,
        }

    # ============= SINGLE ROW =============

    def upsert_mapping(self, mapping: ServiceMappingRecord) -> List[FailedWrite]:
        return self.upsert_mappings([mapping])

    def upsert_suggestion(self, suggestion: ServiceMappingSuggestionRecord) -> List[FailedWrite]:
        return self.upsert_suggestions([suggestion])

    # ============= BATCHED =============

    def upsert_mappings(self, mappings: Sequence[ServiceMappingRecord]) -> List[FailedWrite]:
        # Last write wins when the same key shows up twice in one call
        unique: Dict[Tuple[str, str], ServiceMappingRecord] = {}
        for mapping in mappings:
            unique[(mapping.provider_service_name, mapping.taxonomy_service_id)] = mapping

        failures, written = self._write_in_chunks(
            table=self.MAPPING_TABLE,
            records=list(unique.values()),
            writer=self.database.upsert_mapping_rows,
        )
        self.stats['mappings_written'] += written
        return failures

    def upsert_suggestions(self, suggestions: Sequence[ServiceMappingSuggestionRecord]) -> List[FailedWrite]:
        unique: Dict[str, ServiceMappingSuggestionRecord] = {}
        for suggestion in suggestions:
            unique[suggestion.provider_service_name] = suggestion

        failures, written = self._write_in_chunks(
            table=self.SUGGESTION_TABLE,
            records=list(unique.values()),
            writer=self.database.upsert_suggestion_rows,
        )
        self.stats['suggestions_written'] += written
        return failures

    def _write_in_chunks(self, table: str, records: Sequence, writer: Callable) -> Tuple[List[FailedWrite], int]:
        failures: List[FailedWrite] = []
        written = 0
        if not records:
            return failures, written

        total_chunks = (len(records) + self.batch_size - 1) // self.batch_size
        logger.info(f"📝 Writing {len(records)} row(s) to {table} in {total_chunks} chunk(s)")

        for index, chunk in enumerate(chunked(records, self.batch_size), start=1):
            try:
                self._write_chunk(table, chunk, writer)
                written += len(chunk)
                logger.debug(f"   chunk {index}/{total_chunks}: {len(chunk)} row(s) written to {table}")
            except PersistenceFailure as e:
                self.stats['chunks_failed'] += 1
                logger.error(f"❌ Chunk {index}/{total_chunks} for {table} failed: {e.reason}")
                failures.extend(FailedWrite(label=label, table=table, reason=e.reason) for label in e.labels)

        return failures, written

    def _write_chunk(self, table: str, chunk: Sequence, writer: Callable):
        labels = [r.provider_service_name for r in chunk]
        rows = [r.to_row() for r in chunk]
        guard = ChunkWriteGuard()
        # A hung write must not hold up the chunks after it
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(writer, rows, guard)
            future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            if guard.cancel():
                raise PersistenceFailure(table, labels, f"timed out after {self.timeout_seconds}s, rolled back")
            logger.warning(f"⚠️ Chunk for {table} committed right after the {self.timeout_seconds}s timeout")
        except Exception as e:
            logger.error(f"❌ Error writing chunk to {table}: {e}")
            raise PersistenceFailure(table, labels, str(e)) from e
        finally:
            executor.shutdown(wait=False)
