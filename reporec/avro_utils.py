"""Avro contract checks for payloads leaving the service."""

import json
from functools import lru_cache
from pathlib import Path

from fastavro import parse_schema
from fastavro.validation import ValidationError, validate

SCHEMA_DIR = Path(__file__).resolve().parent / "avro-schemas"


@lru_cache(maxsize=None)
def load_named_schema(name: str) -> dict:
    """Parse ``<name>.avsc`` from the bundled schema directory (once per name)."""
    raw = (SCHEMA_DIR / f"{name}.avsc").read_text(encoding="utf-8")
    return parse_schema(json.loads(raw))


def assert_valid(schema: dict, record: dict) -> None:
    """Raise ``ValueError`` when ``record`` does not conform to ``schema``."""
    try:
        validate(record, schema, raise_errors=True)
    except ValidationError as exc:
        raise ValueError(f"{schema.get('name', 'record')} failed Avro validation: {exc}") from None
