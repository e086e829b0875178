# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Package manifest model, schema validation, and verification."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, ValidationError

from ..acquisition.cache import sha256_file
from ..corpus.identity import CorpusIdentity
from ..errors import BundlerError, PackageOutputError
from ..platforms import Platform
from ..schemas import MANIFEST_SCHEMA, first_error, validator_for

MANIFEST_FILENAME: Final[str] = "manifest.json"
MANIFEST_VERSION: Final[int] = 1


class ManifestArtifact(BaseModel):
    """Artifact definition copied into the package."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    sha256: str
    tools: tuple[str, ...] = ()


class ManifestTool(BaseModel):
    """Tool binary copied into the package."""

    model_config = ConfigDict(frozen=True)

    name: str
    platform: Platform
    path: str
    url: str | None = None
    sha256: str
    expected_hash: str | None = None
    size_bytes: int
    declared_by: tuple[str, ...] = ()
    acquired_at: datetime


class PackageManifest(BaseModel):
    """Provenance record written as ``manifest.json``."""

    model_config = ConfigDict(frozen=True)

    schema_version: int = MANIFEST_VERSION
    created_at: datetime
    generator: str
    corpus: CorpusIdentity
    selection: tuple[str, ...] = ()
    artifacts: tuple[ManifestArtifact, ...] = ()
    tools: tuple[ManifestTool, ...] = ()

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-compatible document form."""

        return self.model_dump(mode="json")


def validate_manifest_document(document: Any) -> None:
    """Raise :class:`BundlerError` when ``document`` violates the manifest schema."""

    problem = first_error(validator_for(MANIFEST_SCHEMA), document)
    if problem is not None:
        raise BundlerError(f"manifest failed schema validation: {problem}")


def write_manifest(directory: Path, manifest: PackageManifest) -> Path:
    """Validate ``manifest`` and write it to ``directory/manifest.json``."""

    document = manifest.to_document()
    validate_manifest_document(document)
    target = directory / MANIFEST_FILENAME
    try:
        target.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except OSError as exc:
        raise PackageOutputError(f"unable to write {target}: {exc}") from exc
    return target


def load_manifest(directory: Path) -> PackageManifest:
    """Read, validate, and parse the manifest of the package at ``directory``."""

    target = directory / MANIFEST_FILENAME
    try:
        document = json.loads(target.read_text(encoding="utf-8"))
    except OSError as exc:
        raise BundlerError(f"unable to read {target}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise BundlerError(f"{target}: invalid JSON: {exc}") from exc
    validate_manifest_document(document)
    try:
        return PackageManifest.model_validate(document)
    except ValidationError as exc:
        raise BundlerError(f"{target}: {exc}") from exc


@dataclass(slots=True)
class VerificationResult:
    """Outcome of re-hashing every file listed in a package manifest."""

    checked: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return ``True`` when every listed file is present and intact."""

        return not self.problems


def verify_package(directory: Path) -> VerificationResult:
    """Re-hash every packaged file and compare it with ``manifest.json``.

    Args:
        directory: Package output directory.

    Returns:
        VerificationResult: Count of checked files and any discrepancies.

    Raises:
        BundlerError: If the manifest is missing or invalid.
    """

    manifest = load_manifest(directory)
    result = VerificationResult()
    entries = [(entry.path, entry.sha256) for entry in manifest.artifacts]
    entries.extend((entry.path, entry.sha256) for entry in manifest.tools)
    for relative, expected in entries:
        path = directory / relative
        result.checked += 1
        if not path.is_file():
            result.problems.append(f"{relative}: missing")
            continue
        actual = sha256_file(path)
        if actual != expected:
            result.problems.append(f"{relative}: expected {expected}, found {actual}")
    return result


__all__ = [
    "MANIFEST_FILENAME",
    "ManifestArtifact",
    "ManifestTool",
    "PackageManifest",
    "VerificationResult",
    "load_manifest",
    "validate_manifest_document",
    "verify_package",
    "write_manifest",
]
