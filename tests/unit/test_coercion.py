from __future__ import annotations

from datetime import date, datetime

import pytest

from excel_mapper.models.system_field import DataType, SystemField
from excel_mapper.models.validation import ErrorKind
from excel_mapper.services.coercion import coerce_value, parse_boolean, parse_date, parse_number


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("550", 550),
        (550, 550),
        (12.5, 12.5),
        ("12,5", 12.5),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("1.234", 1234),
        ("1.234.567", 1234567),
        ("0.5", 0.5),
        ("₺2.500", 2500),
        ("45.50 USD", 45.5),
        ("550 W", 550),
        ("-3", -3),
        ("%18", 18),
        ("1.250,50 TL", 1250.5),
        ("1 250,50", 1250.5),
        ("3,2 kWh", 3.2),
    ],
)
def test_parse_number_accepts_both_separators(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["abc", "Panel 550W model B", "", "-", True, None, "1e5", "ABC1", "v2", "12abc", "550 W W", "TL"],
)
def test_parse_number_rejects_text(raw):
    assert parse_number(raw) is None


def test_parse_date_formats():
    assert parse_date("01.03.2024") == datetime(2024, 3, 1)
    assert parse_date("2024-03-01") == datetime(2024, 3, 1)
    assert parse_date(date(2024, 3, 1)) == datetime(2024, 3, 1)
    assert parse_date("31.02.2024") is None
    assert parse_date("yarın") is None
    assert parse_date(45000) is None


def test_parse_boolean():
    assert parse_boolean("Evet") is True
    assert parse_boolean("hayır") is False
    assert parse_boolean(1) is True
    assert parse_boolean("belki") is None


def test_coerce_empty_is_none_for_every_type():
    for data_type in DataType:
        result = coerce_value("   ", data_type)
        assert result.ok and result.value is None


def test_coerce_number_invalid_type_message():
    result = coerce_value("çok", DataType.NUMBER, column="Fiyat")
    assert result.kind is ErrorKind.INVALID_TYPE
    assert result.message == "Fiyat geçerli bir sayı değil"


def test_coerce_number_bounds():
    price = SystemField(id="price", label="Fiyat", data_type=DataType.NUMBER, min_value=0, exclusive_min=True)
    assert coerce_value("0", DataType.NUMBER, field=price).kind is ErrorKind.INVALID_VALUE
    assert coerce_value("10", DataType.NUMBER, field=price).value == 10
    stock = SystemField(id="stock", label="Stok", data_type=DataType.NUMBER, min_value=0)
    assert coerce_value(0, DataType.NUMBER, field=stock).value == 0
    assert coerce_value(-1, DataType.NUMBER, field=stock).kind is ErrorKind.INVALID_VALUE


def test_coerce_enum_case_insensitive_and_value_map():
    currency = SystemField(
        id="currency", label="Para Birimi", data_type=DataType.ENUM,
        enum_values=("TRY", "USD"), value_map={"TL": "TRY"},
    )
    assert coerce_value("usd", DataType.ENUM, field=currency).value == "USD"
    assert coerce_value(" tl ", DataType.ENUM, field=currency).value == "TRY"
    bad = coerce_value("GBP", DataType.ENUM, field=currency)
    assert bad.kind is ErrorKind.INVALID_VALUE
    assert "GBP" in bad.message


def test_coerce_enum_uses_mapping_values_without_field():
    assert coerce_value("set", DataType.ENUM, enum_values=("PIECE", "SET")).value == "SET"


def test_coerce_date_invalid_type():
    result = coerce_value("geçen hafta", DataType.DATE, column="Tarih")
    assert result.kind is ErrorKind.INVALID_TYPE


def test_coerce_text_trims_and_keeps_integers_plain():
    assert coerce_value("  Panel X ", DataType.TEXT).value == "Panel X"
    assert coerce_value(550.0, DataType.TEXT).value == "550"
    assert coerce_value(datetime(2024, 3, 1), DataType.TEXT).value == "2024-03-01T00:00:00"
