from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from ..models.workbook import Sheet, headers_from_row, is_empty_cell

"""Range & exclusion filter: operator edits of a Sheet's selection.

All functions are pure: they take a Sheet and return a new one.
``apply_empty_row_exclusion`` is the automatic step the orchestrator runs
whenever data, start_row or end_row changes; it only ever adds exclusions.
"""

__all__ = [
    "set_header_row",
    "set_range",
    "toggle_row",
    "bulk_toggle",
    "detect_empty_rows",
    "apply_empty_row_exclusion",
    "effective_bounds",
]

logger = logging.getLogger(__name__)


def set_header_row(sheet: Sheet, header_row: int) -> Sheet:
    """Move the header row, recompute headers and reset start_row.

    header_row is clamped into the data; start_row becomes header_row + 1;
    end_row is kept unless it is now outside [start_row, last row], in which
    case it is clamped to the last row index.
    """
    if not sheet.data:
        return replace(sheet, header_row=0, headers=(), start_row=1, end_row=0)
    last = sheet.last_row_index
    header_row = min(max(header_row, 0), last)
    start_row = header_row + 1
    end_row = sheet.end_row
    if end_row > last or end_row < start_row:
        end_row = last
    return replace(
        sheet,
        header_row=header_row,
        headers=headers_from_row(list(sheet.data[header_row])),
        start_row=start_row,
        end_row=end_row,
    )


def set_range(sheet: Sheet, start: int, end: int) -> Sheet:
    """Store the bounds verbatim; consumers read start > end as empty."""
    return replace(sheet, start_row=start, end_row=end)


def toggle_row(sheet: Sheet, row: int) -> Sheet:
    excluded = set(sheet.excluded_rows)
    if row in excluded:
        excluded.remove(row)
    else:
        excluded.add(row)
    return replace(sheet, excluded_rows=frozenset(excluded))


def bulk_toggle(sheet: Sheet, rows: Iterable[int], exclude: bool) -> Sheet:
    """Add (exclude=True) or remove (exclude=False) every row; idempotent."""
    excluded = set(sheet.excluded_rows)
    if exclude:
        excluded.update(rows)
    else:
        excluded.difference_update(rows)
    return replace(sheet, excluded_rows=frozenset(excluded))


def effective_bounds(sheet: Sheet) -> range:
    """Row indices the selection covers, clamped to the data; empty if out of order."""
    start = max(sheet.start_row, sheet.header_row + 1, 0)
    end = min(sheet.end_row, sheet.last_row_index) if sheet.data else -1
    if start > end:
        return range(0)
    return range(start, end + 1)


def detect_empty_rows(sheet: Sheet) -> list[int]:
    """Indices within the selected range whose cells are all empty."""
    empty: list[int] = []
    for index in effective_bounds(sheet):
        row = sheet.data[index]
        if all(is_empty_cell(c) for c in row):
            empty.append(index)
    return empty


def apply_empty_row_exclusion(sheet: Sheet) -> Sheet:
    empty = detect_empty_rows(sheet)
    new_rows = [r for r in empty if r not in sheet.excluded_rows]
    if not new_rows:
        return sheet
    logger.info("sheet=%s auto-excluded empty rows: %s", sheet.name, [r + 1 for r in new_rows])
    return bulk_toggle(sheet, new_rows, exclude=True)
