from __future__ import annotations

import pytest

from excel_mapper.models.mapping import MappingSet
from excel_mapper.services import mapping_editor as editor


def _assert_one_to_one(mappings: MappingSet) -> None:
    fields = [m.system_field for m in mappings]
    columns = [m.excel_index for m in mappings]
    assert len(fields) == len(set(fields))
    assert len(columns) == len(set(columns))


def test_map_field_binds_with_field_metadata(product_fields):
    result = editor.map_field(MappingSet(), product_fields, "price", "Fiyat", 2)
    m = result.for_field("price")
    assert m is not None
    assert m.excel_column == "Fiyat"
    assert m.excel_index == 2
    assert m.required is True
    assert m.data_type.value == "number"


def test_map_field_replaces_same_field(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "name", "Ad", 0)
    ms = editor.map_field(ms, product_fields, "name", "Ürün", 3)
    assert len(ms) == 1
    assert ms.for_field("name").excel_index == 3


def test_map_field_steals_column_from_other_field(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "name", "Ad", 0)
    ms = editor.map_field(ms, product_fields, "code", "Ad", 0)
    assert not editor.is_field_mapped(ms, "name")
    assert ms.for_column(0).system_field == "code"


def test_uniqueness_holds_after_any_edit_sequence(product_fields):
    ms = MappingSet()
    edits = [
        ("name", 0), ("code", 1), ("price", 2), ("code", 0), ("stock", 2),
        ("price", 1), ("currency", 1), ("name", 4),
    ]
    for field_id, index in edits:
        ms = editor.map_field(ms, product_fields, field_id, f"col{index}", index)
        _assert_one_to_one(ms)
    ms = editor.unmap_field(ms, "currency")
    _assert_one_to_one(ms)


def test_bindings_kept_in_schema_order(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "stock", "Stok", 3)
    ms = editor.map_field(ms, product_fields, "name", "Ad", 0)
    assert [m.system_field for m in ms] == ["name", "stock"]


def test_map_field_rejects_unknown_field_and_negative_index(product_fields):
    with pytest.raises(editor.MappingEditError, match="unknown system field"):
        editor.map_field(MappingSet(), product_fields, "color", "Renk", 0)
    with pytest.raises(editor.MappingEditError, match="invalid column index"):
        editor.map_field(MappingSet(), product_fields, "name", "Ad", -1)


def test_required_fields_tracking(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "name", "Ad", 0)
    missing = [f.id for f in editor.missing_required_fields(ms, product_fields)]
    assert missing == ["code", "price"]
    assert not editor.required_fields_satisfied(ms, product_fields)
    ms = editor.map_field(ms, product_fields, "code", "Kod", 1)
    ms = editor.map_field(ms, product_fields, "price", "Fiyat", 2)
    assert editor.required_fields_satisfied(ms, product_fields)
    assert editor.mapped_fields_count(ms) == 3
    assert editor.is_column_mapped(ms, 2)
    assert not editor.is_column_mapped(ms, 4)


def test_clear_all(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "name", "Ad", 0)
    assert len(editor.clear_all(ms)) == 0


def test_prune_dangling(product_fields):
    ms = editor.map_field(MappingSet(), product_fields, "name", "Ad", 0)
    ms = editor.map_field(ms, product_fields, "price", "Fiyat", 4)
    pruned = editor.prune_dangling(ms, column_count=3)
    assert [m.system_field for m in pruned] == ["name"]
