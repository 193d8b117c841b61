from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError as SchemaValidationError

from ..models.config_models import DEFAULT_DATE_FORMATS, DatabaseConfig, MapperConfig
from ..models.system_field import SystemField

"""Config loader: YAML -> MapperConfig.

Responsibilities:
- Load the YAML document (default config/mapper.yml)
- Validate it against config_schema.json (unknown keys rejected)
- Apply defaults for optional keys
- Reject duplicate field ids
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/mapper.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except SchemaValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path)
        suffix = f" (at {location})" if location else ""
        raise ConfigError(f"config validation failed: {e.message}{suffix}") from e


def config_from_dict(data: dict[str, Any]) -> MapperConfig:
    """Build a MapperConfig from an already parsed document."""
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    _validate_config_schema(data)

    fields = tuple(SystemField.from_dict(raw) for raw in data["fields"])
    seen: set[str] = set()
    for f in fields:
        if f.id in seen:
            raise ConfigError(f"duplicate field id: {f.id}")
        seen.add(f.id)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return MapperConfig(
        fields=fields,
        max_file_size_mb=float(data.get("max_file_size_mb", 10)),
        allowed_extensions=tuple(e.lower() for e in data.get("allowed_extensions", [".xlsx", ".xls"])),
        detect_header_row=bool(data.get("detect_header_row", False)),
        auto_map_threshold=float(data.get("auto_map_threshold", 80)),
        date_formats=tuple(data.get("date_formats") or DEFAULT_DATE_FORMATS),
        import_timeout_seconds=float(data.get("import_timeout_seconds", 60)),
        database=db,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> MapperConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return config_from_dict(data)
