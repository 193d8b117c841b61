from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.mapping import ColumnMapping, MappingSet
from ..models.system_field import SystemField

"""Mapping editor operations over an immutable MappingSet.

Every edit returns a new MappingSet. ``map_field`` enforces the one-to-one
invariants by dropping any binding that collides on the system field or on
the source column before inserting the new one (last write wins).
"""

__all__ = [
    "MappingEditError",
    "map_field",
    "unmap_field",
    "clear_all",
    "is_field_mapped",
    "is_column_mapped",
    "mapped_fields_count",
    "missing_required_fields",
    "required_fields_satisfied",
    "prune_dangling",
]

logger = logging.getLogger(__name__)


class MappingEditError(Exception):
    """Raised when an edit references an unknown field or column."""


def _find_field(fields: Sequence[SystemField], field_id: str) -> SystemField:
    for f in fields:
        if f.id == field_id:
            return f
    raise MappingEditError(f"unknown system field: {field_id}")


def map_field(
    mappings: MappingSet,
    fields: Sequence[SystemField],
    field_id: str,
    excel_header: str,
    excel_index: int,
) -> MappingSet:
    """Bind ``field_id`` to the column at ``excel_index``.

    Existing bindings of the same field or the same column are replaced.
    Bindings keep schema order so the mapping display is stable.
    """
    if excel_index < 0:
        raise MappingEditError(f"invalid column index: {excel_index}")
    field = _find_field(fields, field_id)
    kept = [
        m for m in mappings
        if m.system_field != field_id and m.excel_index != excel_index
    ]
    dropped = len(mappings) - len(kept)
    if dropped:
        logger.debug("map: %s replaced %d colliding binding(s)", field_id, dropped)
    kept.append(ColumnMapping.bind(field, excel_header, excel_index))
    order = {f.id: i for i, f in enumerate(fields)}
    kept.sort(key=lambda m: order.get(m.system_field, len(order)))
    return MappingSet(tuple(kept))


def unmap_field(mappings: MappingSet, field_id: str) -> MappingSet:
    return MappingSet(tuple(m for m in mappings if m.system_field != field_id))


def clear_all(mappings: MappingSet | None = None) -> MappingSet:
    return MappingSet()


def is_field_mapped(mappings: MappingSet, field_id: str) -> bool:
    return mappings.for_field(field_id) is not None


def is_column_mapped(mappings: MappingSet, excel_index: int) -> bool:
    return mappings.for_column(excel_index) is not None


def mapped_fields_count(mappings: MappingSet) -> int:
    return len(mappings)


def missing_required_fields(mappings: MappingSet, fields: Sequence[SystemField]) -> list[SystemField]:
    """Required fields without a binding, in schema order."""
    return [f for f in fields if f.required and not is_field_mapped(mappings, f.id)]


def required_fields_satisfied(mappings: MappingSet, fields: Sequence[SystemField]) -> bool:
    return not missing_required_fields(mappings, fields)


def prune_dangling(mappings: MappingSet, column_count: int) -> MappingSet:
    """Drop bindings whose column no longer exists (e.g. after a header-row change)."""
    kept = tuple(m for m in mappings if 0 <= m.excel_index < column_count)
    if len(kept) != len(mappings):
        dropped = sorted(m.system_field for m in mappings if m not in kept)
        logger.warning("dropping mappings to missing columns: %s", dropped)
    return MappingSet(kept)
