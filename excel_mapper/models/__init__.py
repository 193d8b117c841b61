"""Domain models for the Excel import pipeline.

This package contains the immutable state objects passed between the
pipeline stages: parsed workbook, target schema, column bindings and the
validator's preview.
"""

from .config_models import DatabaseConfig, MapperConfig
from .mapping import ColumnMapping, MappingSet
from .system_field import DataType, SystemField
from .validation import ErrorKind, ImportPreview, Severity, ValidationError
from .workbook import CellValue, Sheet, Workbook

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "MapperConfig",
    # Schema
    "DataType",
    "SystemField",
    # Parsed workbook
    "CellValue",
    "Sheet",
    "Workbook",
    # Mapping
    "ColumnMapping",
    "MappingSet",
    # Validation
    "ErrorKind",
    "ImportPreview",
    "Severity",
    "ValidationError",
]
