from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import IO, Any

from ..excel.reader import ParseError, parse_workbook
from ..models.config_models import MapperConfig
from ..models.mapping import MappingSet
from ..models.system_field import SystemField
from ..models.validation import ImportPreview
from ..models.workbook import Sheet, Workbook
from . import mapping_editor, range_filter
from .auto_mapper import auto_map
from .validator import validate_sheet

"""Import pipeline orchestration: a linear state machine over ImportSession.

    upload -> preview -> mapping -> validation -> importing -> complete

Backward moves mapping -> preview (clears mappings) and validation ->
mapping are always allowed. Every transition replaces the immutable
ImportSession held by the ImportPipeline; a rejected transition raises
PipelineError and leaves the session untouched.

The only asynchronous boundary is the commit callback. It is awaited with a
timeout; a timeout counts as a rejection and returns the pipeline to
validation with the preview preserved. Synchronous callbacks run on a
worker thread; if they define cancel() it is called when the wait is
abandoned.
"""

__all__ = [
    "Step",
    "ImportSession",
    "ImportPipeline",
    "PipelineError",
    "ImportCallbackError",
    "OnImport",
]

logger = logging.getLogger(__name__)

OnImport = Callable[[list[dict[str, Any]]], "Awaitable[None] | None"]


class PipelineError(Exception):
    """A transition was requested from the wrong step or blocked by a gate."""


class ImportCallbackError(PipelineError):
    """The commit callback raised or timed out."""


class Step(Enum):
    UPLOAD = "upload"
    PREVIEW = "preview"
    MAPPING = "mapping"
    VALIDATION = "validation"
    IMPORTING = "importing"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ImportSession:
    """Whole state of one single-operator import session."""
    fields: tuple[SystemField, ...]
    step: Step = Step.UPLOAD
    workbook: Workbook | None = None
    mappings: MappingSet = field(default_factory=MappingSet)
    preview: ImportPreview | None = None
    last_error: str | None = None  # message of the last failed upload / commit
    imported_rows: int = 0  # set on completion

    @property
    def sheet(self) -> Sheet | None:
        return self.workbook.current if self.workbook is not None else None


def _sheet_with_auto_exclusions(sheet: Sheet) -> Sheet:
    return range_filter.apply_empty_row_exclusion(sheet)


class ImportPipeline:
    """Drives the pipeline stages for one operator.

    Args:
        config: loaded MapperConfig (schema fields, limits, thresholds)
        on_import: commit callback receiving the valid records; may be a
            coroutine function or a plain callable (run in a worker thread)
        timeout: seconds to wait for on_import (defaults to the config value)
    """

    def __init__(
        self,
        config: MapperConfig,
        on_import: OnImport,
        *,
        timeout: float | None = None,
    ) -> None:
        self.config = config
        self.on_import = on_import
        self.timeout = timeout if timeout is not None else config.import_timeout_seconds
        self._session = ImportSession(fields=tuple(config.fields))

    # ------------------------------------------------------------------ state

    @property
    def session(self) -> ImportSession:
        return self._session

    @property
    def step(self) -> Step:
        return self._session.step

    @property
    def fields(self) -> tuple[SystemField, ...]:
        return self._session.fields

    def _set(self, **changes: Any) -> ImportSession:
        before = self._session.step
        self._session = replace(self._session, **changes)
        if self._session.step is not before:
            logger.info("step %s -> %s", before.value, self._session.step.value)
        return self._session

    def _require(self, *steps: Step) -> None:
        if self._session.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise PipelineError(
                f"not allowed in step '{self._session.step.value}' (expected: {allowed})"
            )

    def _current_sheet(self) -> Sheet:
        sheet = self._session.sheet
        if sheet is None:  # pragma: no cover - guarded by step checks
            raise PipelineError("no workbook loaded")
        return sheet

    def _replace_sheet(self, sheet: Sheet, **changes: Any) -> ImportSession:
        workbook = self._session.workbook
        assert workbook is not None
        # empty-row detection runs after every data / range change
        sheet = _sheet_with_auto_exclusions(sheet)
        return self._set(workbook=workbook.with_current(sheet), **changes)

    # ---------------------------------------------------------------- upload

    def upload(self, source: Path | bytes | IO[bytes], file_name: str | None = None) -> ImportSession:
        """Parse a file and move to preview.

        On ParseError the step stays at upload, ``last_error`` carries the
        message and the error is re-raised.
        """
        self._require(Step.UPLOAD)
        try:
            workbook = parse_workbook(
                source,
                file_name,
                max_size_bytes=self.config.max_file_size_bytes,
                allowed_extensions=self.config.allowed_extensions,
                detect_header_row=self.config.detect_header_row,
            )
        except ParseError as e:
            logger.error("upload failed: %s", e)
            self._set(last_error=str(e))
            raise
        sheets = tuple(_sheet_with_auto_exclusions(s) for s in workbook.sheets)
        workbook = Workbook(file_name=workbook.file_name, sheets=sheets, active_sheet=0)
        logger.info("loaded %s: %d sheet(s) %s", workbook.file_name, len(sheets), workbook.sheet_names())
        return self._set(
            step=Step.PREVIEW,
            workbook=workbook,
            mappings=MappingSet(),
            preview=None,
            last_error=None,
        )

    # --------------------------------------------------------------- preview

    def select_sheet(self, sheet: int | str) -> ImportSession:
        """Change the active sheet; mappings are sheet-specific and reset."""
        self._require(Step.PREVIEW)
        workbook = self._session.workbook
        assert workbook is not None
        try:
            index = workbook.index_of(sheet) if isinstance(sheet, str) else int(sheet)
        except KeyError:
            raise PipelineError(f"unknown sheet: {sheet}") from None
        if not 0 <= index < len(workbook.sheets):
            raise PipelineError(f"sheet index out of range: {index}")
        workbook = Workbook(file_name=workbook.file_name, sheets=workbook.sheets, active_sheet=index)
        self._set(workbook=workbook, mappings=MappingSet(), preview=None)
        return self._replace_sheet(workbook.current)

    def set_header_row(self, row: int) -> ImportSession:
        self._require(Step.PREVIEW)
        sheet = range_filter.set_header_row(self._current_sheet(), row)
        mappings = mapping_editor.prune_dangling(self._session.mappings, sheet.column_count)
        return self._replace_sheet(sheet, mappings=mappings)

    def set_range(self, start: int, end: int) -> ImportSession:
        self._require(Step.PREVIEW)
        return self._replace_sheet(range_filter.set_range(self._current_sheet(), start, end))

    def toggle_row(self, row: int) -> ImportSession:
        self._require(Step.PREVIEW)
        sheet = range_filter.toggle_row(self._current_sheet(), row)
        workbook = self._session.workbook
        assert workbook is not None
        # no empty-row pass here: operator toggles stand as given
        return self._set(workbook=workbook.with_current(sheet))

    def bulk_toggle(self, rows: Iterable[int], exclude: bool) -> ImportSession:
        self._require(Step.PREVIEW)
        sheet = range_filter.bulk_toggle(self._current_sheet(), list(rows), exclude)
        workbook = self._session.workbook
        assert workbook is not None
        return self._set(workbook=workbook.with_current(sheet))

    def proceed_to_mapping(self) -> ImportSession:
        """Enter mapping with a fresh auto-map of the current headers."""
        self._require(Step.PREVIEW)
        sheet = self._current_sheet()
        mappings = auto_map(sheet.headers, self.fields, self.config.auto_map_threshold)
        return self._set(step=Step.MAPPING, mappings=mappings, preview=None)

    # --------------------------------------------------------------- mapping

    def auto_map(self) -> ImportSession:
        """Replace the current bindings with a fresh auto-map."""
        self._require(Step.MAPPING)
        sheet = self._current_sheet()
        return self._set(mappings=auto_map(sheet.headers, self.fields, self.config.auto_map_threshold))

    def map_field(self, field_id: str, excel_index: int, excel_header: str | None = None) -> ImportSession:
        self._require(Step.MAPPING)
        sheet = self._current_sheet()
        if not 0 <= excel_index < sheet.column_count:
            raise PipelineError(f"column index out of range: {excel_index}")
        header = excel_header if excel_header is not None else sheet.headers[excel_index]
        try:
            mappings = mapping_editor.map_field(
                self._session.mappings, self.fields, field_id, header, excel_index
            )
        except mapping_editor.MappingEditError as e:
            raise PipelineError(str(e)) from e
        return self._set(mappings=mappings)

    def map_field_by_header(self, field_id: str, excel_header: str) -> ImportSession:
        """Bind by header text (first column whose trimmed header matches)."""
        self._require(Step.MAPPING)
        headers = self._current_sheet().headers
        wanted = excel_header.strip()
        for index, header in enumerate(headers):
            if header == wanted:
                return self.map_field(field_id, index, header)
        raise PipelineError(f"unknown column header: {excel_header!r}")

    def unmap_field(self, field_id: str) -> ImportSession:
        self._require(Step.MAPPING)
        return self._set(mappings=mapping_editor.unmap_field(self._session.mappings, field_id))

    def clear_mappings(self) -> ImportSession:
        self._require(Step.MAPPING)
        return self._set(mappings=mapping_editor.clear_all())

    def missing_required_fields(self) -> list[SystemField]:
        return mapping_editor.missing_required_fields(self._session.mappings, self.fields)

    def back_to_preview(self) -> ImportSession:
        self._require(Step.MAPPING)
        return self._set(step=Step.PREVIEW, mappings=MappingSet(), preview=None)

    def validate(self) -> ImportPreview:
        """Run the validator; gated on every required field being mapped."""
        self._require(Step.MAPPING)
        missing = self.missing_required_fields()
        if missing:
            labels = ", ".join(f.label for f in missing)
            raise PipelineError(f"required fields not mapped: {labels}")
        preview = validate_sheet(
            self._current_sheet(),
            self._session.mappings,
            self.fields,
            self.config.date_formats,
        )
        logger.info(
            "validated rows=%d valid=%d invalid=%d warnings=%d",
            preview.total_rows,
            preview.valid_rows,
            preview.invalid_rows,
            preview.warnings,
        )
        self._set(step=Step.VALIDATION, preview=preview, last_error=None)
        return preview

    # ------------------------------------------------------------ validation

    def back_to_mapping(self) -> ImportSession:
        self._require(Step.VALIDATION)
        return self._set(step=Step.MAPPING, preview=None)

    def _call_in_thread(self, rows: list[dict[str, Any]], abandoned: threading.Event) -> Any:
        if abandoned.is_set():
            raise ImportCallbackError("import cancelled before start")
        return self.on_import(rows)

    async def _invoke(self, rows: list[dict[str, Any]]) -> None:
        if inspect.iscoroutinefunction(self.on_import):
            await self.on_import(rows)
            return
        # a worker thread cannot be interrupted: sinks exposing cancel() are
        # told to abort so a timed-out import never commits behind our back
        abandoned = threading.Event()
        try:
            result = await asyncio.to_thread(self._call_in_thread, rows, abandoned)
        except asyncio.CancelledError:
            abandoned.set()
            cancel = getattr(self.on_import, "cancel", None)
            if callable(cancel):
                cancel()
            raise
        if inspect.isawaitable(result):
            await result

    async def commit(self) -> ImportSession:
        """Hand the valid records to the commit callback.

        Blocked while the preview has error findings or no records. A second
        call while importing is rejected. Callback failure or timeout moves
        back to validation and raises ImportCallbackError with its message.
        Cancellation also moves back to validation before propagating.
        """
        if self._session.step is Step.IMPORTING:
            raise PipelineError("import already in progress")
        self._require(Step.VALIDATION)
        preview = self._session.preview
        assert preview is not None
        if not preview.can_commit:
            if preview.has_blocking_errors:
                raise PipelineError(
                    f"cannot import: {preview.error_count} error(s) in {preview.invalid_rows} row(s)"
                )
            raise PipelineError("cannot import: no valid rows")

        rows = [dict(r) for r in preview.mapped_data]
        self._set(step=Step.IMPORTING, last_error=None)
        try:
            await asyncio.wait_for(self._invoke(rows), timeout=self.timeout)
        except asyncio.TimeoutError:
            message = f"import timed out after {self.timeout:g}s"
            logger.error("commit failed: %s", message)
            self._set(step=Step.VALIDATION, last_error=message)
            raise ImportCallbackError(message) from None
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error("commit failed: %s", message)
            self._set(step=Step.VALIDATION, last_error=message)
            raise ImportCallbackError(message) from e
        except BaseException:
            # cancelled from outside: never leave the session stuck importing
            logger.error("commit failed: import cancelled")
            self._set(step=Step.VALIDATION, last_error="import cancelled")
            raise

        logger.info("imported %d row(s)", len(rows))
        # committed: drop the working state, keep only the outcome
        return self._set(
            step=Step.COMPLETE,
            workbook=None,
            mappings=MappingSet(),
            preview=None,
            imported_rows=len(rows),
        )

    def commit_sync(self) -> ImportSession:
        """Blocking wrapper around commit() for non-async callers."""
        return asyncio.run(self.commit())

    def reset(self) -> ImportSession:
        """Discard everything and start over at upload."""
        if self._session.step is Step.IMPORTING:
            raise PipelineError("import already in progress")
        self._session = ImportSession(fields=self.fields)
        logger.info("session reset")
        return self._session
