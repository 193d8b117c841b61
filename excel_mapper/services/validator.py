from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..models.config_models import DEFAULT_DATE_FORMATS
from ..models.mapping import ColumnMapping, MappingSet
from ..models.system_field import SystemField
from ..models.validation import ErrorKind, ImportPreview, Severity, ValidationError
from ..models.workbook import CellValue, Sheet, is_empty_cell
from .coercion import coerce_value
from .range_filter import effective_bounds

"""Validator / transformer: selected sheet rows -> ImportPreview.

For every row in [start_row, end_row] that is not excluded:
  1. read the mapped cell for each binding
  2. coerce it to the binding's data type (invalid_type / invalid_value)
  3. flag empty required values (missing_required)
  4. track values of unique fields across rows (duplicates, warning only)
  5. rows without error-severity findings go to mapped_data

Per-cell problems never raise. Bindings that point past the sheet's column
count are treated as unmapped. Fully empty rows that were not excluded are
skipped and not counted, so total_rows == valid_rows + invalid_rows holds.
Only mapped fields appear in an output record; unmapped fields are absent.
"""

__all__ = [
    "validate",
    "validate_sheet",
    "group_errors_by_type",
    "format_validation_message",
    "ERROR_GROUPS",
]

logger = logging.getLogger(__name__)

ERROR_GROUPS: tuple[ErrorKind, ...] = (
    ErrorKind.MISSING_REQUIRED,
    ErrorKind.INVALID_TYPE,
    ErrorKind.INVALID_VALUE,
    ErrorKind.DUPLICATES,
    ErrorKind.WARNINGS,
)


def _usable_mappings(mappings: Iterable[ColumnMapping], column_count: int) -> list[ColumnMapping]:
    usable: list[ColumnMapping] = []
    for m in mappings:
        if 0 <= m.excel_index < column_count:
            usable.append(m)
        else:
            logger.warning(
                "mapping %s -> column %d ignored (sheet has %d columns)",
                m.system_field,
                m.excel_index,
                column_count,
            )
    return usable


def _duplicate_key(value: Any) -> str:
    # 550.0 and "550" are the same identifier
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip().casefold()


def validate(
    sheet_data: Sequence[Sequence[CellValue]],
    mappings: MappingSet | Iterable[ColumnMapping],
    start_row: int,
    end_row: int,
    excluded_rows: Iterable[int] = (),
    *,
    fields: Sequence[SystemField] = (),
    unique_fields: Iterable[str] | None = None,
    column_count: int | None = None,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> ImportPreview:
    """Validate and transform the selected rows.

    Args:
        sheet_data: raw grid (rows of cells)
        mappings: column bindings to apply
        start_row, end_row: inclusive 0-based bounds; start > end is empty
        excluded_rows: row indices to skip
        fields: schema used for per-field constraints and uniqueness flags
        unique_fields: field ids checked for duplicates (default: fields
            flagged ``unique``)
        column_count: number of header columns; defaults to the widest row
        date_formats: strptime patterns tried for DATE fields

    Returns:
        ImportPreview with counts, findings and the clean records.
    """
    if column_count is None:
        column_count = max((len(r) for r in sheet_data), default=0)
    active = _usable_mappings(mappings, column_count)
    by_id = {f.id: f for f in fields}
    if unique_fields is None:
        unique = {f.id for f in fields if f.unique}
    else:
        unique = set(unique_fields)
    excluded = set(excluded_rows)

    first = max(start_row, 0)
    last = min(end_row, len(sheet_data) - 1)

    errors: list[ValidationError] = []
    mapped_data: list[dict[str, Any]] = []
    seen: dict[str, dict[str, int]] = {fid: {} for fid in unique}
    valid_rows = 0
    invalid_rows = 0
    warnings = 0

    for row_index in range(first, last + 1):
        if row_index in excluded:
            continue
        row = sheet_data[row_index]
        if all(is_empty_cell(c) for c in row):
            continue

        record: dict[str, Any] = {}
        row_findings: list[ValidationError] = []
        for m in active:
            raw = row[m.excel_index] if m.excel_index < len(row) else None
            field = by_id.get(m.system_field)
            result = coerce_value(
                raw,
                m.data_type,
                field=field,
                enum_values=m.enum_values,
                date_formats=date_formats,
                column=m.excel_column,
            )
            if not result.ok:
                row_findings.append(ValidationError(
                    row=row_index,
                    column=m.excel_column,
                    field=m.system_field,
                    message=result.message or "geçersiz değer",
                    severity=Severity.ERROR,
                    kind=result.kind or ErrorKind.INVALID_VALUE,
                ))
                continue

            value = result.value
            record[m.system_field] = value
            if value is None or value == "":
                if m.required:
                    row_findings.append(ValidationError(
                        row=row_index,
                        column=m.excel_column,
                        field=m.system_field,
                        message=f"{m.excel_column} boş olamaz",
                        severity=Severity.ERROR,
                        kind=ErrorKind.MISSING_REQUIRED,
                    ))
                continue

            if m.system_field in seen:
                key = _duplicate_key(value)
                first_row = seen[m.system_field].get(key)
                if first_row is None:
                    seen[m.system_field][key] = row_index
                else:
                    row_findings.append(ValidationError(
                        row=row_index,
                        column=m.excel_column,
                        field=m.system_field,
                        message=(
                            f'"{value}" değeri tekrar ediyor '
                            f"(ilk: satır {first_row + 1}, tekrar: satır {row_index + 1})"
                        ),
                        severity=Severity.WARNING,
                        kind=ErrorKind.DUPLICATES,
                    ))

        row_errors = sum(1 for e in row_findings if e.is_error)
        warnings += len(row_findings) - row_errors
        if row_errors == 0:
            valid_rows += 1
            mapped_data.append(record)
        else:
            invalid_rows += 1
            logger.debug("row=%d invalid findings=%d", row_index + 1, row_errors)
        errors.extend(row_findings)

    return ImportPreview(
        total_rows=valid_rows + invalid_rows,
        valid_rows=valid_rows,
        invalid_rows=invalid_rows,
        warnings=warnings,
        errors=tuple(errors),
        mapped_data=tuple(mapped_data),
    )


def validate_sheet(
    sheet: Sheet,
    mappings: MappingSet,
    fields: Sequence[SystemField] = (),
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> ImportPreview:
    """Run ``validate`` over a Sheet's own selection and header width.

    Rows at or above the header row are never validated as data.
    """
    bounds = effective_bounds(sheet)
    start, end = (bounds.start, bounds.stop - 1) if bounds else (1, 0)
    return validate(
        sheet.data,
        mappings,
        start,
        end,
        sheet.excluded_rows,
        fields=fields,
        column_count=sheet.column_count,
        date_formats=date_formats,
    )


def group_errors_by_type(errors: Iterable[ValidationError]) -> dict[str, list[ValidationError]]:
    """Bucket findings by the kind they were raised with.

    Every bucket is present (possibly empty); keys are ErrorKind values.
    """
    grouped: dict[str, list[ValidationError]] = {kind.value: [] for kind in ERROR_GROUPS}
    for error in errors:
        grouped[error.kind.value].append(error)
    return grouped


def format_validation_message(error: ValidationError) -> str:
    return f"Satır {error.display_row}: {error.message}"
