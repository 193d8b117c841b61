from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .system_field import DataType, SystemField

"""ColumnMapping model: binding between a source column and a SystemField.

A MappingSet is the ordered, immutable collection of bindings for the active
sheet. One-to-one invariants (unique system_field, unique excel_index) are
maintained by services.mapping_editor and services.auto_mapper.
"""

__all__ = [
    "ColumnMapping",
    "MappingSet",
]


@dataclass(frozen=True)
class ColumnMapping:
    excel_column: str  # header text at bind time
    excel_index: int  # 0-based column index in the sheet
    system_field: str  # SystemField.id
    required: bool
    data_type: DataType
    enum_values: tuple[str, ...] | None = None

    @staticmethod
    def bind(field: SystemField, excel_column: str, excel_index: int) -> ColumnMapping:
        return ColumnMapping(
            excel_column=excel_column,
            excel_index=excel_index,
            system_field=field.id,
            required=field.required,
            data_type=field.data_type,
            enum_values=field.enum_values,
        )


@dataclass(frozen=True)
class MappingSet:
    mappings: tuple[ColumnMapping, ...] = ()

    def __iter__(self) -> Iterator[ColumnMapping]:
        return iter(self.mappings)

    def __len__(self) -> int:
        return len(self.mappings)

    def for_field(self, field_id: str) -> ColumnMapping | None:
        for m in self.mappings:
            if m.system_field == field_id:
                return m
        return None

    def for_column(self, excel_index: int) -> ColumnMapping | None:
        for m in self.mappings:
            if m.excel_index == excel_index:
                return m
        return None

    def as_dict(self) -> dict[str, str]:
        """system_field -> excel_column (debug / display helper)."""
        return {m.system_field: m.excel_column for m in self.mappings}
