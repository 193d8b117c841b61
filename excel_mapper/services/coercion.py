from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..models.config_models import DEFAULT_DATE_FORMATS
from ..models.system_field import DataType, SystemField
from ..models.validation import ErrorKind
from ..models.workbook import CellValue, is_empty_cell

"""Per data-type coercion of raw cell values.

Each coercer returns a Coerced result instead of raising: ``kind`` is None
on success, otherwise the ErrorKind the validator files the finding under.
Empty cells coerce to ``Coerced(None)``; the required check is the
validator's job.
"""

__all__ = [
    "Coerced",
    "coerce_value",
    "parse_number",
    "parse_date",
    "parse_boolean",
]

TRUE_WORDS = frozenset({"true", "yes", "evet", "1", "x", "var"})
FALSE_WORDS = frozenset({"false", "no", "hayır", "hayir", "0", "yok"})

# currency marks and units allowed around a number ("₺1.250,50", "550 W", "45.50 USD")
_CURRENCY = r"₺|\$|€|£|TL|TRY|USD|EUR|GBP"
_UNIT = r"%|W|Wp|kW|kWp|Wh|kWh|V|A|Ah|mAh|adet"
_NUMBER_RE = re.compile(
    rf"(?:(?:{_CURRENCY}|%)\s*)?(?P<number>[-+]?[\d.,][\d.,\s]*?)\s*(?:{_CURRENCY}|{_UNIT})?",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Coerced:
    value: Any = None
    kind: ErrorKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind is None


def parse_number(raw: CellValue) -> float | int | None:
    """Parse a numeric cell accepting both '.' and ',' decimal separators.

    "1.234,56" -> 1234.56, "1,234.56" -> 1234.56, "12,5" -> 12.5,
    "1.234" -> 1234 (dot followed by exactly three digits reads as
    thousands). A currency mark or unit may surround the number; any other
    text makes the cell non-numeric and returns None.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not re.search(r"\d", text):
        return None
    # anything besides a known currency or unit ("1e5", "v2", "12abc") is not a number
    match = _NUMBER_RE.fullmatch(text)
    if match is None:
        return None
    cleaned = re.sub(r"\s", "", match["number"])
    if not cleaned or cleaned in {"-", "+", ".", ","}:
        return None

    if "," in cleaned and "." in cleaned:
        # the right-most separator is the decimal mark
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if cleaned.count(",") > 1:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")
    elif re.fullmatch(r"-?\d{1,3}\.\d{3}", cleaned):
        cleaned = cleaned.replace(".", "")

    try:
        number = float(cleaned)
    except ValueError:
        return None
    if number.is_integer() and "." not in cleaned:
        return int(number)
    return number


def parse_date(raw: CellValue, formats: Sequence[str] = DEFAULT_DATE_FORMATS) -> datetime | None:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_boolean(raw: CellValue) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return {1: True, 0: False}.get(raw)  # type: ignore[call-overload]
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in TRUE_WORDS:
            return True
        if word in FALSE_WORDS:
            return False
    return None


def _coerce_enum(raw: CellValue, field: SystemField | None, enum_values: Sequence[str] | None) -> Coerced:
    text = str(raw).strip()
    upper = text.upper()
    if field is not None and field.value_map and upper in field.value_map:
        return Coerced(field.value_map[upper])
    if not enum_values:
        return Coerced(text)
    for candidate in enum_values:
        if candidate == text or candidate.upper() == upper:
            return Coerced(candidate)
    return Coerced(
        kind=ErrorKind.INVALID_VALUE,
        message=f'"{text}" izin verilen değerlerden biri değil ({", ".join(enum_values)})',
    )


def _check_bounds(number: float | int, field: SystemField | None) -> Coerced:
    if field is None or field.min_value is None:
        return Coerced(number)
    if field.exclusive_min and number <= field.min_value:
        return Coerced(
            kind=ErrorKind.INVALID_VALUE,
            message=f"{field.label} {field.min_value:g} değerinden büyük olmalı",
        )
    if not field.exclusive_min and number < field.min_value:
        return Coerced(
            kind=ErrorKind.INVALID_VALUE,
            message=f"{field.label} en az {field.min_value:g} olmalı",
        )
    return Coerced(number)


def coerce_value(
    raw: CellValue,
    data_type: DataType,
    *,
    field: SystemField | None = None,
    enum_values: Sequence[str] | None = None,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
    column: str = "",
) -> Coerced:
    """Coerce ``raw`` to ``data_type``.

    ``field`` supplies optional constraints (bounds, enum synonyms);
    ``column`` is only used to phrase error messages.
    """
    if is_empty_cell(raw):
        return Coerced(None)
    label = column or (field.label if field else "değer")

    if data_type is DataType.NUMBER:
        number = parse_number(raw)
        if number is None:
            return Coerced(kind=ErrorKind.INVALID_TYPE, message=f"{label} geçerli bir sayı değil")
        return _check_bounds(number, field)

    if data_type is DataType.DATE:
        parsed = parse_date(raw, date_formats)
        if parsed is None:
            return Coerced(kind=ErrorKind.INVALID_TYPE, message=f"{label} geçerli bir tarih değil")
        return Coerced(parsed)

    if data_type is DataType.BOOLEAN:
        flag = parse_boolean(raw)
        if flag is None:
            return Coerced(kind=ErrorKind.INVALID_TYPE, message=f"{label} evet/hayır değeri değil")
        return Coerced(flag)

    if data_type is DataType.ENUM:
        if enum_values is None and field is not None:
            enum_values = field.enum_values
        return _coerce_enum(raw, field, enum_values)

    # TEXT: numbers keep their natural text form ("550", not "550.0")
    if isinstance(raw, float) and raw.is_integer():
        return Coerced(str(int(raw)))
    if isinstance(raw, datetime):
        return Coerced(raw.isoformat())
    return Coerced(str(raw).strip())
