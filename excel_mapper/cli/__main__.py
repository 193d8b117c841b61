from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date, datetime
from functools import partial
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from excel_mapper.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from excel_mapper.excel.reader import ParseError, parse_workbook
from excel_mapper.logging.error_export import write_errors_csv
from excel_mapper.logging.init import log_summary, set_debug, setup_logging
from excel_mapper.models.config_models import DatabaseConfig, MapperConfig
from excel_mapper.services.orchestrator import ImportPipeline, PipelineError
from excel_mapper.services.summary import render_summary_line
from excel_mapper.services.validator import format_validation_message, group_errors_by_type

"""CLI entrypoint: run one spreadsheet through the import pipeline.

Flow:
- Load .env and config/mapper.yml
- Parse the file, select sheet / header row / range / exclusions
- Auto-map columns, apply --map overrides, validate
- Write the error ledger CSV, print SUMMARY
- Commit valid rows to a JSON Lines file (--output) or a table (--table)
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_BLOCKED = 2

MAX_LISTED_ERRORS = 20


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


class JsonLinesSink:
    """Commit callback appending one JSON object per record."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __call__(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            for rec in records:
                f.write(json.dumps(rec, ensure_ascii=False, default=_json_default) + "\n")


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string; environment (.env loaded first) wins over config."""
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _build_sink(args: argparse.Namespace, cfg: MapperConfig) -> Any:
    if args.table:
        import psycopg2

        from excel_mapper.db.batch_insert import PostgresSink

        # columns follow the mapped fields of the committed records
        return PostgresSink(partial(psycopg2.connect, _resolve_dsn(cfg.database)), args.table)
    return JsonLinesSink(Path(args.output))


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="excel-mapper", description="Excel product import: map, validate, import")
    p.add_argument("file", type=Path, help="Spreadsheet (.xlsx / .xls)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML")
    p.add_argument("--sheet", help="Sheet name or 0-based index")
    p.add_argument("--header-row", type=int, help="0-based header row index")
    p.add_argument("--start", type=int, help="First data row (0-based, inclusive)")
    p.add_argument("--end", type=int, help="Last data row (0-based, inclusive)")
    p.add_argument("--exclude", default="", help="Comma separated 0-based row indices to skip")
    p.add_argument("--map", action="append", default=[], metavar="FIELD=HEADER",
                   help="Manual mapping applied after auto-map (repeatable)")
    p.add_argument("--errors-csv", type=Path, help="Write validation findings to this CSV")
    sink = p.add_mutually_exclusive_group()
    sink.add_argument("--output", default="import.jsonl", help="JSON Lines output file")
    sink.add_argument("--table", help="PostgreSQL table to insert into")
    p.add_argument("--dry-run", action="store_true", help="Stop after validation")
    p.add_argument("--inspect-data", action="store_true", help="Print sheets, headers & first rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _parse_rows(text: str) -> list[int]:
    rows: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if part:
            rows.append(int(part))
    return rows


def _inspect_data(path: Path, cfg: MapperConfig) -> int:
    try:
        workbook = parse_workbook(
            path,
            max_size_bytes=cfg.max_file_size_bytes,
            allowed_extensions=cfg.allowed_extensions,
            detect_header_row=cfg.detect_header_row,
        )
    except ParseError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {workbook.file_name}")
    for index, sheet in enumerate(workbook.sheets):
        print(f"  SHEET[{index}]: {sheet.name} rows={sheet.row_count} header_row={sheet.header_row}")
        print(f"    headers={list(sheet.headers)}")
        for row in sheet.data[sheet.start_row:sheet.start_row + 3]:
            safe = [c.isoformat() if hasattr(c, "isoformat") else c for c in row]
            print(f"    {safe}")
    return EXIT_SUCCESS


def _apply_manual_maps(pipeline: ImportPipeline, pairs: list[str]) -> None:
    for pair in pairs:
        field_id, sep, header = pair.partition("=")
        if not sep:
            raise PipelineError(f"invalid --map '{pair}' (expected FIELD=HEADER)")
        pipeline.map_field_by_header(field_id.strip(), header)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # argv=[] from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    load_dotenv(dotenv_path=Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.file, cfg)

    pipeline = ImportPipeline(cfg, _build_sink(args, cfg))
    try:
        pipeline.upload(args.file)
    except ParseError as e:
        logger.error(f"parse: {e}")
        return EXIT_FATAL

    try:
        if args.sheet is not None:
            pipeline.select_sheet(int(args.sheet) if args.sheet.isdigit() else args.sheet)
        if args.header_row is not None:
            pipeline.set_header_row(args.header_row)
        if args.start is not None or args.end is not None:
            sheet = pipeline.session.sheet
            assert sheet is not None
            start = args.start if args.start is not None else sheet.start_row
            end = args.end if args.end is not None else sheet.end_row
            pipeline.set_range(start, end)
        if args.exclude:
            pipeline.bulk_toggle(_parse_rows(args.exclude), exclude=True)

        pipeline.proceed_to_mapping()
        _apply_manual_maps(pipeline, args.map)
        for m in pipeline.session.mappings:
            logger.info(f"map {m.system_field} <- '{m.excel_column}' (col {m.excel_index + 1})")

        missing = pipeline.missing_required_fields()
        if missing:
            logger.error("required fields not mapped: " + ", ".join(f"{f.id} ({f.label})" for f in missing))
            return EXIT_BLOCKED

        preview = pipeline.validate()
    except (PipelineError, ValueError) as e:
        logger.error(f"pipeline: {e}")
        return EXIT_FATAL

    for kind, errors in group_errors_by_type(preview.errors).items():
        if errors:
            logger.info(f"{kind}: {len(errors)}")
    for error in preview.errors[:MAX_LISTED_ERRORS]:
        line = format_validation_message(error)
        if error.is_error:
            logger.error(line)
        else:
            logger.warning(line)

    if preview.errors:
        csv_path = write_errors_csv(preview.errors, args.errors_csv)
        logger.info(f"errors written to {csv_path}")

    summary_line = render_summary_line(preview, len(pipeline.session.mappings), len(cfg.fields))
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])

    if preview.has_blocking_errors:
        return EXIT_BLOCKED
    if args.dry_run:
        return EXIT_SUCCESS

    try:
        session = pipeline.commit_sync()
    except PipelineError as e:
        logger.error(f"import: {e}")
        return EXIT_BLOCKED
    target = args.table or args.output
    logger.info(f"imported {session.imported_rows} row(s) into {target}")
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
