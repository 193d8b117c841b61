from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Union

"""Workbook / Sheet domain models for the Excel import pipeline.

A Workbook is created once per uploaded file and replaced wholesale on
re-upload. Sheets are immutable; range and exclusion edits produce new
Sheet instances (see services.range_filter).
"""

__all__ = [
    "CellValue",
    "Sheet",
    "Workbook",
    "is_empty_cell",
    "headers_from_row",
    "PLACEHOLDER_HEADER_PREFIX",
]

# Raw cell as read from the spreadsheet; coercion happens in the validator
CellValue = Union[str, int, float, datetime, date, bool, None]

PLACEHOLDER_HEADER_PREFIX = "Sütun"


def is_empty_cell(value: CellValue) -> bool:
    """A cell is empty when it is None or a blank string after trimming."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def headers_from_row(row: list[CellValue] | None) -> tuple[str, ...]:
    """Derive trimmed column headers from a raw row.

    Empty header cells become ``"Sütun {n}"`` placeholders so every column
    keeps an addressable, index-aligned name.
    """
    if not row:
        return ()
    headers: list[str] = []
    for index, cell in enumerate(row):
        if is_empty_cell(cell):
            headers.append(f"{PLACEHOLDER_HEADER_PREFIX} {index + 1}")
        else:
            headers.append(str(cell).strip())
    return tuple(headers)


@dataclass(frozen=True)
class Sheet:
    """One worksheet plus the operator's range selection.

    Invariants (enforced by services.range_filter):
    - 0 <= header_row < len(data)
    - excluded_rows only ever holds indices the operator or the empty-row
      detector added
    start_row / end_row are stored verbatim; out-of-order bounds are read
    as an empty range by the validator.
    """
    name: str
    data: tuple[tuple[CellValue, ...], ...]
    header_row: int = 0
    headers: tuple[str, ...] = ()
    start_row: int = 1
    end_row: int = 0
    excluded_rows: frozenset[int] = field(default_factory=frozenset)

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def last_row_index(self) -> int:
        return max(len(self.data) - 1, 0)

    @property
    def column_count(self) -> int:
        return len(self.headers)


@dataclass(frozen=True)
class Workbook:
    """Parsed spreadsheet: ordered sheets plus the active sheet index."""
    file_name: str
    sheets: tuple[Sheet, ...]
    active_sheet: int = 0

    def __post_init__(self) -> None:
        if self.sheets and not 0 <= self.active_sheet < len(self.sheets):
            raise ValueError(
                f"active_sheet {self.active_sheet} out of range (sheets={len(self.sheets)})"
            )

    @property
    def current(self) -> Sheet:
        return self.sheets[self.active_sheet]

    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def index_of(self, name: str) -> int:
        for index, sheet in enumerate(self.sheets):
            if sheet.name == name:
                return index
        raise KeyError(name)

    def with_sheet(self, index: int, sheet: Sheet) -> Workbook:
        """Return a copy with the sheet at ``index`` replaced."""
        sheets = list(self.sheets)
        sheets[index] = sheet
        return Workbook(file_name=self.file_name, sheets=tuple(sheets), active_sheet=self.active_sheet)

    def with_current(self, sheet: Sheet) -> Workbook:
        return self.with_sheet(self.active_sheet, sheet)
