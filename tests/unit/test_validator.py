from __future__ import annotations

from excel_mapper.models.mapping import ColumnMapping, MappingSet
from excel_mapper.models.system_field import DataType, SystemField
from excel_mapper.models.validation import ErrorKind, Severity, ValidationError
from excel_mapper.services.validator import (
    ERROR_GROUPS,
    format_validation_message,
    group_errors_by_type,
    validate,
)

NAME = SystemField(id="name", label="Ürün Adı", required=True)
PRICE = SystemField(id="price", label="Fiyat", required=True, data_type=DataType.NUMBER)
CODE = SystemField(id="code", label="Ürün Kodu", unique=True)
FIELDS = (NAME, PRICE, CODE)

NAME_PRICE = MappingSet((
    ColumnMapping.bind(NAME, "Ad", 0),
    ColumnMapping.bind(PRICE, "Fiyat", 1),
))


def test_valid_row_is_coerced():
    data = [["Ad", "Fiyat"], ["Panel X", "550"]]
    preview = validate(data, NAME_PRICE, 1, 1, fields=FIELDS)
    assert preview.valid_rows == 1
    assert preview.invalid_rows == 0
    assert preview.errors == ()
    assert preview.mapped_data == ({"name": "Panel X", "price": 550},)


def test_missing_required_marks_row_invalid():
    data = [["Ad", "Fiyat"], ["", "550"]]
    preview = validate(data, NAME_PRICE, 1, 1, fields=FIELDS)
    assert preview.invalid_rows == 1
    assert preview.mapped_data == ()
    assert len(preview.errors) == 1
    err = preview.errors[0]
    assert err.kind is ErrorKind.MISSING_REQUIRED
    assert err.field == "name"
    assert err.row == 1
    assert err.severity is Severity.ERROR


def test_duplicate_values_warn_once_and_stay_valid():
    mappings = MappingSet((
        ColumnMapping.bind(NAME, "Ad", 0),
        ColumnMapping.bind(PRICE, "Fiyat", 1),
        ColumnMapping.bind(CODE, "Kod", 2),
    ))
    data = [
        ["Ad", "Fiyat", "Kod"],
        ["Panel X", 550, "JKS-550"],
        ["Panel Y", 600, "jks-550 "],
    ]
    preview = validate(data, mappings, 1, 2, fields=FIELDS)
    assert preview.valid_rows == 2
    assert len(preview.mapped_data) == 2
    dups = [e for e in preview.errors if e.kind is ErrorKind.DUPLICATES]
    assert len(dups) == 1
    assert dups[0].severity is Severity.WARNING
    assert dups[0].row == 2
    assert "satır 2" in dups[0].message and "satır 3" in dups[0].message
    assert preview.warnings == 1
    assert preview.can_commit


def test_explicit_unique_fields_override_schema_flags():
    data = [["Ad", "Fiyat"], ["Panel", 1], ["Panel", 2]]
    preview = validate(data, NAME_PRICE, 1, 2, fields=FIELDS, unique_fields=["name"])
    assert [e.kind for e in preview.errors] == [ErrorKind.DUPLICATES]


def test_duplicates_match_integral_floats_and_text():
    data = [["Ad", "Fiyat"], ["Panel", 550.0], ["Kablo", "550"], ["Röle", 550.5]]
    preview = validate(data, NAME_PRICE, 1, 3, fields=FIELDS, unique_fields=["price"])
    dups = [e for e in preview.errors if e.kind is ErrorKind.DUPLICATES]
    assert [e.row for e in dups] == [2]


def test_counts_respect_exclusions_and_range():
    data = [
        ["Ad", "Fiyat"],
        ["A", 1],
        ["B", "x"],
        ["C", 3],
        ["D", 4],
    ]
    preview = validate(data, NAME_PRICE, 1, 3, excluded_rows={3}, fields=FIELDS)
    assert preview.total_rows == 2
    assert preview.valid_rows == 1
    assert preview.invalid_rows == 1
    assert preview.total_rows == preview.valid_rows + preview.invalid_rows
    assert len(preview.mapped_data) == preview.valid_rows
    assert preview.errors[0].kind is ErrorKind.INVALID_TYPE


def test_empty_and_inverted_range():
    data = [["Ad", "Fiyat"], ["A", 1]]
    inverted = validate(data, NAME_PRICE, 5, 2, fields=FIELDS)
    assert (inverted.total_rows, inverted.valid_rows, inverted.invalid_rows) == (0, 0, 0)
    beyond = validate(data, NAME_PRICE, 1, 99, fields=FIELDS)
    assert beyond.total_rows == 1


def test_blank_rows_are_not_counted():
    data = [["Ad", "Fiyat"], ["", ""], ["A", 1]]
    preview = validate(data, NAME_PRICE, 1, 2, fields=FIELDS)
    assert preview.total_rows == 1


def test_mapping_outside_columns_is_ignored():
    mappings = MappingSet((
        ColumnMapping.bind(NAME, "Ad", 0),
        ColumnMapping.bind(PRICE, "Fiyat", 5),
    ))
    data = [["Ad", "Fiyat"], ["A", 1]]
    preview = validate(data, mappings, 1, 1, fields=FIELDS, column_count=2)
    assert preview.mapped_data == ({"name": "A"},)


def test_unmapped_fields_absent_from_records():
    mappings = MappingSet((ColumnMapping.bind(NAME, "Ad", 0),))
    preview = validate([["Ad"], ["A"]], mappings, 1, 1, fields=FIELDS)
    assert preview.mapped_data == ({"name": "A"},)


def test_group_errors_by_type_has_every_bucket():
    errors = [
        ValidationError(1, "Ad", "name", "Ad boş olamaz", Severity.ERROR, ErrorKind.MISSING_REQUIRED),
        ValidationError(2, "Fiyat", "price", "x", Severity.ERROR, ErrorKind.INVALID_TYPE),
        ValidationError(3, "Kod", "code", "y", Severity.WARNING, ErrorKind.DUPLICATES),
    ]
    grouped = group_errors_by_type(errors)
    assert list(grouped) == [k.value for k in ERROR_GROUPS]
    assert [len(v) for v in grouped.values()] == [1, 1, 0, 1, 0]
    assert sum(len(v) for v in grouped.values()) == len(errors)


def test_format_validation_message_uses_display_row():
    err = ValidationError(4, "Ad", "name", "Ad boş olamaz", Severity.ERROR, ErrorKind.MISSING_REQUIRED)
    assert format_validation_message(err) == "Satır 5: Ad boş olamaz"
