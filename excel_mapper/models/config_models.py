from __future__ import annotations

from dataclasses import dataclass, field

from .system_field import SystemField

"""Config dataclasses for the Excel import pipeline.

The loader in excel_mapper/config/loader.py validates the YAML document
against config_schema.json and builds these objects; downstream services
only ever see the typed form.
"""

DEFAULT_DATE_FORMATS: tuple[str, ...] = (
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d.%m.%Y %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL sink fallback settings.

    Environment variables (DATABASE_URL / PGDSN / PG*) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class MapperConfig:
    """Root configuration object for an import session."""
    fields: tuple[SystemField, ...]  # target schema, in display order
    max_file_size_mb: float = 10.0  # parser size ceiling
    allowed_extensions: tuple[str, ...] = (".xlsx", ".xls")
    detect_header_row: bool = False  # use suggest_header_row() instead of row 0
    auto_map_threshold: float = 80.0  # rapidfuzz score (0-100)
    date_formats: tuple[str, ...] = DEFAULT_DATE_FORMATS
    import_timeout_seconds: float = 60.0  # onImport bound
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    def field_by_id(self, field_id: str) -> SystemField | None:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None
