# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Load bundled JSON documents and the validators built from them."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Final

from jsonschema import Draft202012Validator

DATA_PACKAGE: Final[str] = "artifact_bundler.data"
REGISTRY_DOCUMENT: Final[str] = "registry.json"
REGISTRY_SCHEMA: Final[str] = "registry.schema.json"
MANIFEST_SCHEMA: Final[str] = "manifest.schema.json"


def load_bundled_document(name: str) -> Any:
    """Return the parsed JSON document ``name`` shipped with the package."""

    text = resources.files(DATA_PACKAGE).joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


@lru_cache(maxsize=None)
def validator_for(schema_name: str) -> Draft202012Validator:
    """Return a cached validator for the bundled schema ``schema_name``."""

    schema = load_bundled_document(schema_name)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def first_error(validator: Draft202012Validator, instance: Any) -> str | None:
    """Return a readable description of the most relevant validation error."""

    errors = sorted(validator.iter_errors(instance), key=lambda error: list(error.absolute_path))
    if not errors:
        return None
    error = errors[0]
    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"


__all__ = [
    "MANIFEST_SCHEMA",
    "REGISTRY_DOCUMENT",
    "REGISTRY_SCHEMA",
    "first_error",
    "load_bundled_document",
    "validator_for",
]
