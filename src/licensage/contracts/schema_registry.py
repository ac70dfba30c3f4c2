"""JSON schemas of the structured documents, looked up by registry name."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft7Validator, ValidationError

SCHEMA_DIR = Path(__file__).resolve().parents[1] / "schemas"

SchemaValidationError = ValidationError
"""Alias for jsonschema.ValidationError.
Keeps callers unaware of the implementation.
"""

SCHEMA_FILES = {
    "copyright_garbage_v1": "copyright_garbage_schema_v1.json",
    "curations_v1": "curations_schema_v1.json",
    "license_configuration_v1": "license_configuration_schema_v1.json",
    "resolutions_v1": "resolutions_schema_v1.json",
    "repository_configuration_v1": "repository_configuration_schema_v1.json",
    "package_configurations_v1": "package_configurations_schema_v1.json",
    "license_findings_map_v1": "license_findings_map_schema_v1.json",
    "ruleset_v1": "ruleset_schema_v1.json",
    "how_to_fix_v1": "how_to_fix_schema_v1.json",
}

_VALIDATORS: dict[str, Draft7Validator] = {}


def get_schema(name: str) -> Mapping[str, Any]:
    """Return the JSON schema with the given registry name."""

    return get_validator(name).schema


def get_validator(name: str) -> Draft7Validator:
    """Return a cached validator; the schema itself is checked on first use."""

    if name not in _VALIDATORS:
        path = SCHEMA_DIR / SCHEMA_FILES[name]
        with path.open("r", encoding="utf-8") as handle:
            schema = json.load(handle)
        Draft7Validator.check_schema(schema)
        _VALIDATORS[name] = Draft7Validator(schema)
    return _VALIDATORS[name]


def validate(name: str, instance: Any) -> None:
    """Validate an instance against a named schema."""

    get_validator(name).validate(instance)


def describe(error: ValidationError) -> str:
    """Render a validation error with the JSON path of the offending value."""

    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"
