from __future__ import annotations

import io
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import IO, Any

import pandas as pd

from ..models.workbook import CellValue, Sheet, Workbook, headers_from_row, is_empty_cell

"""Spreadsheet parser: binary .xlsx/.xls file -> in-memory Workbook.

Cells are read raw (header=None, dtype=object) so the preview can show the
original values; type coercion is deferred to the validator. pandas picks
the engine (openpyxl for .xlsx, xlrd for .xls).

Defaults per sheet: header_row=0, start_row=1, end_row=last row index,
excluded_rows empty.
"""

__all__ = [
    "ParseError",
    "parse_workbook",
    "read_sheet_rows",
    "suggest_header_row",
    "DEFAULT_MAX_FILE_SIZE",
]

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_EXTENSIONS = (".xlsx", ".xls")
HEADER_SCAN_ROWS = 10
HEADER_MIN_CELLS = 3


class ParseError(Exception):
    """Raised when the upload is not a readable spreadsheet within limits."""


def _to_cell(value: Any) -> CellValue:
    if value is None:
        return None
    # pd.isna on containers raises; cells are scalars
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):  # pragma: no cover
        return value
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if hasattr(value, "item") and not isinstance(value, (str, bytes, datetime)):
        # numpy scalar -> python scalar
        return value.item()
    return value


def read_sheet_rows(df: pd.DataFrame) -> tuple[tuple[CellValue, ...], ...]:
    """Convert a raw DataFrame (header=None) into a tuple-of-tuples grid."""
    return tuple(
        tuple(_to_cell(v) for v in raw)
        for raw in df.itertuples(index=False, name=None)
    )


def suggest_header_row(data: Iterable[Iterable[CellValue]]) -> int:
    """Guess which of the first rows holds column names.

    Returns the first row (within the first 10) having at least three
    non-empty cells that are all non-numeric text; 0 when none qualifies.
    """
    for index, row in enumerate(data):
        if index >= HEADER_SCAN_ROWS:
            break
        cells = [c for c in row if not is_empty_cell(c)]
        if len(cells) < HEADER_MIN_CELLS:
            continue
        if all(isinstance(c, str) and not _looks_numeric(c) for c in cells):
            return index
    return 0


def _looks_numeric(text: str) -> bool:
    try:
        float(text.strip().replace(",", "."))
    except ValueError:
        return False
    return True


def _build_sheet(name: str, data: tuple[tuple[CellValue, ...], ...], detect_header_row: bool) -> Sheet:
    header_row = suggest_header_row(data) if detect_header_row else 0
    headers = headers_from_row(list(data[header_row])) if data else ()
    return Sheet(
        name=name,
        data=data,
        header_row=header_row,
        headers=headers,
        start_row=header_row + 1,
        end_row=max(len(data) - 1, 0),
        excluded_rows=frozenset(),
    )


def parse_workbook(
    source: Path | bytes | IO[bytes],
    file_name: str | None = None,
    *,
    max_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
    allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    detect_header_row: bool = False,
) -> Workbook:
    """Parse a spreadsheet file into a Workbook.

    Parameters
    ----------
    source: file path, raw bytes, or a binary file object (not consumed twice)
    file_name: name used for the extension check when source is not a path
    max_size_bytes: upload size ceiling (reference 10MB)
    allowed_extensions: accepted suffixes (lowercase, with dot)
    detect_header_row: use suggest_header_row() instead of row 0

    Raises
    ------
    ParseError: unsupported extension, oversized, unreadable or sheetless file
    """
    if isinstance(source, Path):
        name = file_name or source.name
        if not source.exists():
            raise ParseError(f"file not found: {source}")
        size = source.stat().st_size
        payload: bytes | None = None
    else:
        name = file_name or getattr(source, "name", "") or "upload"
        payload = source if isinstance(source, bytes) else source.read()
        size = len(payload)

    suffix = Path(name).suffix.lower()
    allowed = {ext.lower() for ext in allowed_extensions}
    if suffix not in allowed:
        raise ParseError(f"unsupported file type '{suffix or name}' (allowed: {sorted(allowed)})")
    if size > max_size_bytes:
        raise ParseError(
            f"file too large: {size} bytes (limit {max_size_bytes} bytes)"
        )
    if size == 0:
        raise ParseError(f"empty file: {name}")

    target = source if payload is None else io.BytesIO(payload)
    try:
        xls = pd.ExcelFile(target)
        sheets: list[Sheet] = []
        for sheet_name in xls.sheet_names:
            # raw read: no header, no NA string conversion, object dtype
            df = xls.parse(
                sheet_name,
                header=None,
                dtype=object,
                keep_default_na=False,
                na_values=[],
            )
            sheets.append(_build_sheet(str(sheet_name), read_sheet_rows(df), detect_header_row))
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(f"could not read spreadsheet '{name}': {e}") from e

    if not sheets:
        raise ParseError(f"workbook '{name}' contains no sheets")
    return Workbook(file_name=name, sheets=tuple(sheets), active_sheet=0)
