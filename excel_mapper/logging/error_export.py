from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.validation import ValidationError

"""CSV export of the validation error ledger.

One line per ValidationError, header
``Satır,Sütun,Alan,Mesaj,Önem``; the row number is 1-based. Files written
without an explicit path land in ``logs/validation-errors-YYYYMMDD-HHMMSS.csv``
(UTC stamp). Written with a UTF-8 BOM so spreadsheet apps detect Turkish
characters.
"""

__all__ = [
    "CSV_HEADER",
    "errors_to_csv",
    "write_errors_csv",
    "default_export_path",
]

CSV_HEADER = ("Satır", "Sütun", "Alan", "Mesaj", "Önem")
LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def errors_to_csv(errors: Iterable[ValidationError]) -> str:
    """Serialize findings to CSV text (no BOM)."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for e in errors:
        writer.writerow([e.display_row, e.column, e.field, e.message, e.severity.value])
    return buf.getvalue()


def default_export_path() -> Path:
    stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
    return LOGS_DIR / f"validation-errors-{stamp}.csv"


def write_errors_csv(errors: Iterable[ValidationError], path: Path | None = None) -> Path:
    """Write the ledger to ``path`` (or the timestamped default) and return it."""
    target = path or default_export_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(errors_to_csv(errors), encoding="utf-8-sig")
    return target
