from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Validation result models: ValidationError ledger entries and ImportPreview.

Row numbers are stored 0-based (index into Sheet.data); operator-facing
renderings (message formatting, CSV export) add one.
"""

__all__ = [
    "ErrorKind",
    "Severity",
    "ValidationError",
    "ImportPreview",
]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class ErrorKind(Enum):
    """Bucket a finding lands in; decided where the finding is raised."""
    MISSING_REQUIRED = "missing_required"
    INVALID_TYPE = "invalid_type"
    INVALID_VALUE = "invalid_value"
    DUPLICATES = "duplicates"
    WARNINGS = "warnings"


@dataclass(frozen=True)
class ValidationError:
    """One per-row, per-field finding.

    Attributes:
        row: 0-based row index in the sheet data
        column: Source header text of the mapped column
        field: Target SystemField id
        message: Human-readable description (Turkish, operator facing)
        severity: ERROR blocks the row; WARNING is informational
        kind: Grouping bucket (see group_errors_by_type)
    """
    row: int
    column: str
    field: str
    message: str
    severity: Severity
    kind: ErrorKind

    @property
    def display_row(self) -> int:
        return self.row + 1

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass(frozen=True)
class ImportPreview:
    """Validator output for the selected range.

    Invariants: total_rows == valid_rows + invalid_rows and
    len(mapped_data) == valid_rows. Excluded rows are not counted.
    """
    total_rows: int
    valid_rows: int
    invalid_rows: int
    warnings: int
    errors: tuple[ValidationError, ...] = ()
    mapped_data: tuple[dict[str, Any], ...] = ()

    @property
    def error_count(self) -> int:
        return sum(1 for e in self.errors if e.is_error)

    @property
    def has_blocking_errors(self) -> bool:
        return self.error_count > 0

    @property
    def can_commit(self) -> bool:
        return not self.has_blocking_errors and len(self.mapped_data) > 0
