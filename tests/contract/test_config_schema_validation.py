from __future__ import annotations

import json
import pathlib

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from excel_mapper.config.loader import SCHEMA_PATH

"""Config schema contract: the shipped mapper.yml and minimal documents."""

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SHIPPED_CONFIG = PROJECT_ROOT / "config" / "mapper.yml"


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_shipped_config_is_valid(schema):
    config = yaml.safe_load(SHIPPED_CONFIG.read_text(encoding="utf-8"))
    jsonschema.validate(config, schema)
    ids = [f["id"] for f in config["fields"]]
    assert len(ids) == len(set(ids))


def test_minimal_config_valid(schema):
    jsonschema.validate({"fields": [{"id": "name", "label": "Ürün Adı"}]}, schema)


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"fields": []},
        {"fields": [{"id": "name"}]},
        {"fields": [{"id": "name", "label": "Ad", "data_type": "money"}]},
        {"fields": [{"id": "name", "label": "Ad", "colour": "red"}]},
        {"fields": [{"id": "name", "label": "Ad"}], "auto_map_threshold": 120},
        {"fields": [{"id": "name", "label": "Ad"}], "allowed_extensions": ["xlsx"]},
        {"fields": [{"id": "name", "label": "Ad"}], "database": {"hostname": "x"}},
    ],
)
def test_invalid_configs_rejected(schema, config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, schema)
