from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""SystemField schema model for the Excel import pipeline.

A SystemField describes one target attribute of the records emitted by the
pipeline (e.g. product name, price). The field list is supplied from
configuration and is read-only to every pipeline stage.
"""

__all__ = [
    "DataType",
    "SystemField",
]


class DataType(Enum):
    """Target data type a mapped column is coerced to during validation."""
    TEXT = "text"
    NUMBER = "number"
    ENUM = "enum"
    DATE = "date"
    BOOLEAN = "boolean"

    @classmethod
    def parse(cls, raw: str) -> DataType:
        # "string" is accepted as a synonym of text
        value = raw.strip().lower()
        if value == "string":
            return cls.TEXT
        return cls(value)


@dataclass(frozen=True)
class SystemField:
    """One target field of the import schema.

    Attributes:
        id: Unique key used in the emitted record
        label: Display name shown to the operator (also used for auto-mapping)
        required: Whether every imported row must carry a value
        data_type: Coercion target applied by the validator
        enum_values: Closed value set for ENUM fields
        value_map: Case-insensitive synonyms -> canonical enum value
        aliases: Alternative header spellings considered by the auto-mapper
        unique: Repeated values across rows produce a duplicates warning
        min_value: Lower bound for NUMBER fields
        exclusive_min: Treat min_value as an exclusive bound (x > min_value)
    """
    id: str
    label: str
    required: bool = False
    data_type: DataType = DataType.TEXT
    enum_values: tuple[str, ...] | None = None
    value_map: dict[str, str] | None = field(default=None, hash=False, compare=False)
    aliases: tuple[str, ...] = ()
    unique: bool = False
    min_value: float | None = None
    exclusive_min: bool = False
    example: str | None = None
    description: str | None = None

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> SystemField:
        """Build a SystemField from a (schema validated) config mapping."""
        enum_values = raw.get("enum_values")
        value_map = raw.get("value_map")
        return SystemField(
            id=str(raw["id"]),
            label=str(raw["label"]),
            required=bool(raw.get("required", False)),
            data_type=DataType.parse(raw.get("data_type", "text")),
            enum_values=tuple(str(v) for v in enum_values) if enum_values else None,
            value_map={str(k).upper(): str(v) for k, v in value_map.items()} if value_map else None,
            aliases=tuple(str(a) for a in raw.get("aliases", [])),
            unique=bool(raw.get("unique", False)),
            min_value=raw.get("min_value"),
            exclusive_min=bool(raw.get("exclusive_min", False)),
            example=raw.get("example"),
            description=raw.get("description"),
        )
