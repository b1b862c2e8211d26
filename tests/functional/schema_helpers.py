"""JSON Schema validation against the contracts under ``schemas/``."""

from __future__ import annotations

from pathlib import Path
from typing import Any
import json

from jsonschema import Draft202012Validator

SCHEMAS_DIR = Path(__file__).resolve().parents[2] / "schemas"


def validate(instance: Any, schema_name: str) -> None:
    schema = json.loads((SCHEMAS_DIR / schema_name).read_text(encoding="utf-8"))
    Draft202012Validator(schema).validate(instance)
