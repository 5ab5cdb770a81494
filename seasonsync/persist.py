"""
Chunked replace-then-insert persistence.

A batch is written in fixed-size chunks, strictly one after another. The
first chunk of a batch deletes what it replaces (the whole table, or only
the seasons present in the batch); every chunk is one atomic insert. A chunk
that fails is logged with its row range and counted, and the next chunk runs
anyway, so one bad chunk never sinks an import.

The direct-SQL path additionally retries rate-limit and 5xx responses with
linear backoff and sleeps a fixed delay between chunks.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Literal, Optional
import requests

from . import settings
from .schemas import ImportLogEntry, Record
from .store import SqlClient, TableStore, build_delete, build_insert

logger = logging.getLogger(__name__)

ReplaceScope = Literal["table", "season"]


@dataclass
class PersistResult:
    table: str
    inserted: int = 0
    errors: int = 0
    chunks: int = 0
    deleted: int = 0
    error_log: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.errors == 0


@dataclass(frozen=True)
class QueryOutcome:
    """Result of a retried SQL call: 'ok', 'exhausted' (transient errors every attempt) or 'fatal'."""

    status: Literal["ok", "exhausted", "fatal"]
    attempts: int
    status_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def backoff_delay(attempt: int) -> float:
    return min(attempt * settings.BACKOFF_STEP_SECONDS, settings.BACKOFF_CAP_SECONDS)


def is_transient(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def execute_with_retry(
    client: SqlClient,
    query: str,
    max_attempts: int = settings.MAX_RETRIES,
    sleep: Callable[[float], Any] = time.sleep,
) -> QueryOutcome:
    status_code = None
    detail = ""
    for attempt in range(1, max_attempts + 1):
        try:
            response = client.execute(query)
        except requests.exceptions.RequestException as e:
            # No response at all; treat like a 5xx
            status_code, detail = None, str(e)
        else:
            if response.ok:
                return QueryOutcome("ok", attempt, response.status_code)
            status_code, detail = response.status_code, response.text[:300]
            if not is_transient(status_code):
                return QueryOutcome("fatal", attempt, status_code, detail)

        if attempt < max_attempts:
            delay = backoff_delay(attempt)
            logger.warning(f"  > ⏳ Transient error ({status_code}), retrying in {delay:.0f}s ({attempt}/{max_attempts})")
            sleep(delay)

    return QueryOutcome("exhausted", max_attempts, status_code, detail)


def to_rows(records: Iterable[Any]) -> list[dict]:
    return [r.to_row() if isinstance(r, Record) else dict(r) for r in records]


def chunked(rows: list, size: int) -> Iterable[tuple[int, list]]:
    for start in range(0, len(rows), size):
        yield start, rows[start : start + size]


def replace_filters(rows: list[dict], replace_scope: ReplaceScope) -> Optional[dict]:
    """Delete filter for a replace: None means the whole table."""
    if replace_scope == "table":
        return None
    seasons = sorted({row.get("season") or "" for row in rows})
    return {"season": seasons}


class BatchPersister:
    def __init__(
        self,
        store: Optional[TableStore] = None,
        sql_client: Optional[SqlClient] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self.store = store
        self.sql_client = sql_client
        self.sleep = sleep

    def persist(
        self,
        table: str,
        records: Iterable[Any],
        chunk_size: Optional[int] = None,
        replace_existing: bool = True,
        replace_scope: ReplaceScope = "season",
        first_batch: bool = True,
    ) -> PersistResult:
        """
        Writes through the table API. `first_batch=False` marks a follow-up
        call for the same logical import, which never deletes.
        """
        if self.store is None:
            raise ValueError("persist() needs a TableStore")

        rows = to_rows(records)
        chunk_size = chunk_size or settings.CHUNK_SIZES.get(table, 1000)
        skip_duplicates = table not in settings.KEEP_DUPLICATE_TABLES
        result = PersistResult(table)
        total_chunks = (len(rows) + chunk_size - 1) // chunk_size

        logger.info(f"💾 Writing {len(rows)} rows to {table} in {total_chunks} chunks of {chunk_size}")

        for start, chunk in chunked(rows, chunk_size):
            result.chunks += 1
            if start == 0 and replace_existing and first_batch:
                filters = replace_filters(rows, replace_scope)
                try:
                    result.deleted = self.store.delete(table, filters)
                except requests.exceptions.RequestException as e:
                    return self._abort(result, rows, f"Replace delete on {table} failed: {e}")
                logger.info(f"  > 🗑️  Cleared {result.deleted} rows ({_scope_label(filters)})")

            try:
                result.inserted += self.store.insert(table, chunk, skip_duplicates=skip_duplicates)
            except requests.exceptions.RequestException as e:
                self._chunk_failed(result, start, chunk, str(e))

        self._finish(result)
        return result

    def persist_sql(
        self,
        table: str,
        records: Iterable[Any],
        chunk_size: Optional[int] = None,
        replace_existing: bool = True,
        replace_scope: ReplaceScope = "table",
        first_batch: bool = True,
    ) -> PersistResult:
        """Writes through the direct-SQL endpoint with retry/backoff and a fixed inter-chunk delay."""
        if self.sql_client is None:
            raise ValueError("persist_sql() needs a SqlClient")

        rows = to_rows(records)
        chunk_size = chunk_size or settings.CHUNK_SIZES.get(table, 200)
        skip_duplicates = table not in settings.KEEP_DUPLICATE_TABLES
        result = PersistResult(table)
        total_chunks = (len(rows) + chunk_size - 1) // chunk_size

        logger.info(f"💾 Writing {len(rows)} rows to {table} via SQL in {total_chunks} chunks of {chunk_size}")

        for start, chunk in chunked(rows, chunk_size):
            result.chunks += 1
            if start == 0 and replace_existing and first_batch:
                filters = replace_filters(rows, replace_scope)
                outcome = execute_with_retry(self.sql_client, build_delete(table, filters), sleep=self.sleep)
                if not outcome.ok:
                    return self._abort(
                        result, rows, f"Replace delete on {table} failed ({outcome.status_code}): {outcome.detail}"
                    )
                logger.info(f"  > 🗑️  Cleared {table} ({_scope_label(filters)})")

            outcome = execute_with_retry(
                self.sql_client, build_insert(table, chunk, skip_duplicates), sleep=self.sleep
            )
            if outcome.ok:
                result.inserted += len(chunk)
            else:
                self._chunk_failed(result, start, chunk, f"{outcome.status} ({outcome.status_code}): {outcome.detail}")

            # Stay under the endpoint's rate limit regardless of retries
            self.sleep(settings.INTER_CHUNK_DELAY_SECONDS)

        self._finish(result)
        return result

    def log_import(
        self, file_name: str, file_type: str, record_count: int, season: Optional[str] = None
    ) -> ImportLogEntry:
        """Appends one audit row to the import log."""
        entry = ImportLogEntry(
            file_name=file_name, file_type=file_type, season=season, record_count=record_count
        )
        if self.store is not None:
            self.store.insert(settings.IMPORT_LOG_TABLE, [entry.to_row()], skip_duplicates=False)
        elif self.sql_client is not None:
            outcome = execute_with_retry(
                self.sql_client,
                build_insert(settings.IMPORT_LOG_TABLE, [entry.to_row()], skip_duplicates=False),
                sleep=self.sleep,
            )
            if not outcome.ok:
                logger.error(f"❌ Could not write import log: {outcome.detail}")
        return entry

    def _chunk_failed(self, result: PersistResult, start: int, chunk: list, reason: str):
        message = f"Chunk {result.chunks} (rows {start}-{start + len(chunk) - 1}): {reason}"
        result.errors += len(chunk)
        result.error_log.append(message)
        logger.error(f"  > ❌ {message[:300]}")

    def _abort(self, result: PersistResult, rows: list, reason: str) -> PersistResult:
        result.errors = len(rows) - result.inserted
        result.error_log.append(reason)
        logger.error(f"  > ❌ {reason[:300]}. Nothing written.")
        return result

    def _finish(self, result: PersistResult):
        if result.errors:
            logger.warning(f"⚠️ {result.table}: {result.inserted} inserted, {result.errors} failed")
        else:
            logger.info(f"✅ {result.table}: {result.inserted} inserted")


def write_error_log(result: PersistResult, directory: Path) -> Optional[Path]:
    """Writes chunk errors next to the imported file; returns the path if anything was written."""
    if not result.error_log:
        return None
    log_path = Path(directory) / "import-errors.log"
    try:
        log_path.write_text("\n\n".join(result.error_log), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not write {log_path}: {e}")
        return None
    logger.info(f"📝 Error details written to: {log_path}")
    return log_path


def _scope_label(filters: Optional[dict]) -> str:
    if filters is None:
        return "whole table"
    return "seasons " + ", ".join(s or "(blank)" for s in filters["season"])
