from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from psycopg2.extras import Json, execute_values

from ..services.progress import ProgressTracker

"""PostgreSQL sink for validated records (optional onImport implementation).

The pipeline core never writes anywhere; the CLI wires this sink as the
commit callback when ``--table`` is given. Rows are written with
psycopg2.extras.execute_values in pages inside one transaction owned by
the caller.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "records_to_rows",
    "PostgresSink",
]


logger = logging.getLogger(__name__)


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for one execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    batches: int = 0


@dataclass
class _ActiveImport:
    conn: Any = None
    cancelled: threading.Event = field(default_factory=threading.Event)


def _check_identifier(name: str) -> str:
    # alphanumerics and underscores only (optionally schema-qualified)
    parts = name.split(".")
    if not all(p and p.replace("_", "").isalnum() for p in parts):
        raise BatchInsertError(f"invalid identifier: {name!r}")
    return ".".join(f'"{p}"' for p in parts)


def records_to_rows(records: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> list[list[Any]]:
    """Project records onto ``columns``; missing keys become NULL, dicts become JSON."""
    rows: list[list[Any]] = []
    for rec in records:
        row = []
        for col in columns:
            value = rec.get(col)
            row.append(Json(value) if isinstance(value, (dict, list)) else value)
        rows.append(row)
    return rows


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """INSERT ``rows`` into ``table`` in pages of ``page_size``.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (letters, digits, underscores; may be schema.table)
    columns: insert column names, aligned with each row
    rows: row sequences
    page_size: rows per execute_values call
    metrics_callback: receives BatchMetrics per page (not called for no rows)
    """
    rows_list = [list(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0, batches=0)
    if not columns:
        raise BatchInsertError("no columns to insert")

    table_sql = _check_identifier(table)
    cols_sql = ",".join(_check_identifier(c) for c in columns)
    base_sql = f"INSERT INTO {table_sql} ({cols_sql}) VALUES %s"

    batches = 0
    for offset in range(0, len(rows_list), page_size):
        page = rows_list[offset:offset + page_size]
        start_time = time.time()
        try:
            execute_values(cursor, base_sql, page, page_size=page_size)
        except Exception as e:
            raise BatchInsertError(str(e)) from e
        finally:
            end_time = time.time()
            if metrics_callback is not None:
                metrics_callback(BatchMetrics(
                    batch_size=len(page),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                ))
        batches += 1
    return InsertResult(inserted_rows=len(rows_list), batches=batches)


class PostgresSink:
    """Commit callback writing records into one table.

    ``connect`` returns a DB-API connection (psycopg2.connect partial). The
    whole import runs in one transaction: any failure rolls back and is
    re-raised as BatchInsertError, which the pipeline reports as a rejected
    import. Without ``columns`` the insert uses the keys of the first
    record, so unmapped fields keep their table defaults.

    cancel() may be called from another thread while an import runs: the
    running statement is cancelled and the transaction rolls back instead of
    committing.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        table: str,
        columns: Sequence[str] | None = None,
        page_size: int = 1000,
    ) -> None:
        self.connect = connect
        self.table = table
        self.columns = list(columns) if columns else None
        self.page_size = page_size
        self.last_result: InsertResult | None = None
        self._active: _ActiveImport | None = None

    def cancel(self) -> None:
        active = self._active
        if active is None:
            return
        active.cancelled.set()
        if active.conn is not None:
            try:
                active.conn.cancel()
            except Exception as e:
                logger.warning("could not cancel running statement: %s", e)

    def __call__(self, records: Sequence[Mapping[str, Any]]) -> None:
        columns = self.columns or (list(records[0]) if records else [])
        rows = records_to_rows(records, columns)
        active = _ActiveImport()
        self._active = active
        conn = active.conn = self.connect()
        try:
            with ProgressTracker(len(rows), description=f"Importing into {self.table}") as progress:
                with conn.cursor() as cur:
                    result = batch_insert(
                        cur,
                        self.table,
                        columns,
                        rows,
                        page_size=self.page_size,
                        metrics_callback=lambda m: progress.advance(m.batch_size),
                    )
            if active.cancelled.is_set():
                raise BatchInsertError("import cancelled")
            conn.commit()
            self.last_result = result
        except BatchInsertError:
            conn.rollback()
            raise
        except Exception as e:
            conn.rollback()
            raise BatchInsertError(str(e)) from e
        finally:
            self._active = None
            conn.close()
