# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from excel_mapper.logging.init import reset_logging
from excel_mapper.models.system_field import DataType, SystemField


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """max_file_size_mb: 10
auto_map_threshold: 80
import_timeout_seconds: 5
fields:
  - id: name
    label: Ürün Adı
    required: true
    data_type: text
    aliases: [ad, isim]
  - id: code
    label: Ürün Kodu
    required: true
    data_type: text
    unique: true
    aliases: [kod, sku]
  - id: price
    label: Fiyat
    required: true
    data_type: number
    min_value: 0
    exclusive_min: true
  - id: stock
    label: Stok
    data_type: number
    min_value: 0
  - id: currency
    label: Para Birimi
    data_type: enum
    enum_values: [TRY, USD, EUR]
    value_map: {TL: TRY, DOLAR: USD}
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "mapper.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def product_fields() -> tuple[SystemField, ...]:
    return (
        SystemField(id="name", label="Ürün Adı", required=True, aliases=("ad",)),
        SystemField(id="code", label="Ürün Kodu", required=True, unique=True, aliases=("kod",)),
        SystemField(id="price", label="Fiyat", required=True, data_type=DataType.NUMBER,
                    min_value=0, exclusive_min=True),
        SystemField(id="stock", label="Stok", data_type=DataType.NUMBER, min_value=0),
        SystemField(id="currency", label="Para Birimi", data_type=DataType.ENUM,
                    enum_values=("TRY", "USD", "EUR"), value_map={"TL": "TRY"}),
    )


@pytest.fixture()
def make_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    """Write ``{sheet_name: rows}`` to data/<name> (rows include the header row)."""
    def _make(sheets: dict[str, list[list[Any]]], name: str = "products.xlsx") -> Path:
        path = temp_workdir / "data" / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path
    return _make
