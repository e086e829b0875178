# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Core data model shared by the parse, resolve, acquire, and package stages."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field

from .platforms import Platform, infer_platform

UNKNOWN: Final[str] = "unknown"


def normalize_tool_name(name: str) -> str:
    """Return the case-insensitive lookup key for a tool name."""

    return " ".join(name.split()).lower()


def normalize_hash(value: str | None) -> str | None:
    """Return a lower-case hex digest or ``None`` for blank values."""

    if value is None:
        return None
    cleaned = value.strip().lower()
    if cleaned.startswith("sha256:"):
        cleaned = cleaned[len("sha256:") :]
    return cleaned or None


class ArtifactType(str, Enum):
    """Enumerate where an artifact's query runs."""

    CLIENT = "client"
    SERVER = "server"
    CLIENT_EVENT = "client_event"
    UNKNOWN = UNKNOWN

    @classmethod
    def parse(cls, raw: object) -> ArtifactType:
        """Map a raw envelope value onto an artifact type.

        Args:
            raw: Value of the envelope's ``type`` field.

        Returns:
            ArtifactType: Matching type, ``UNKNOWN`` when absent or unrecognised.
        """

        if not isinstance(raw, str):
            return cls.UNKNOWN
        token = raw.strip().lower().replace("-", "_")
        if token == "server_event":
            return cls.SERVER
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


class ArtifactParameter(BaseModel):
    """A declared artifact parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    default: str | None = None
    type: str = "string"


class QueryBlock(BaseModel):
    """One named query block from an artifact's ``sources`` list."""

    model_config = ConfigDict(frozen=True)

    name: str
    query: str


class DeclaredTool(BaseModel):
    """A tool declared in the envelope's ``tools`` list."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str | None = None
    expected_hash: str | None = None
    platform: Platform | None = None


class ArtifactDefinition(BaseModel):
    """Structured record for a single artifact definition file."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = UNKNOWN
    author: str = UNKNOWN
    artifact_type: ArtifactType = ArtifactType.UNKNOWN
    parameters: tuple[ArtifactParameter, ...] = ()
    queries: tuple[QueryBlock, ...] = ()
    tools: tuple[DeclaredTool, ...] = ()
    tags: tuple[str, ...] = ()
    source_path: Path
    parse_error: bool = False
    parse_messages: tuple[str, ...] = ()

    @property
    def query_source(self) -> str:
        """Return every query block joined into a single source text."""

        return "\n".join(block.query for block in self.queries)

    def parameter_default(self, name: str) -> str | None:
        """Return the literal default of parameter ``name`` (case-insensitive)."""

        lowered = name.lower()
        for parameter in self.parameters:
            if parameter.name.lower() == lowered:
                return parameter.default
        return None


class ToolReference(BaseModel):
    """A reference to an external tool binary, possibly merged across artifacts."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    display_name: str
    url: str | None = None
    expected_hash: str | None = None
    target_platform: Platform = Platform.ANY
    declared_by: frozenset[str] = Field(default_factory=frozenset)
    origins: frozenset[str] = Field(default_factory=frozenset)
    inferred: bool = False

    @classmethod
    def create(
        cls,
        name: str,
        *,
        declared_by: str,
        origin: str,
        url: str | None = None,
        expected_hash: str | None = None,
        platform: Platform | None = None,
        inferred: bool = False,
    ) -> ToolReference:
        """Build a single-artifact reference with normalised fields.

        Args:
            name: Tool name as written in the definition.
            declared_by: Name of the artifact declaring the tool.
            origin: How the reference was discovered.
            url: Optional download URL.
            expected_hash: Optional declared SHA-256 digest.
            platform: Explicit platform; inferred from ``url`` when ``None``.
            inferred: ``True`` when ``name`` was derived from ``url``.

        Returns:
            ToolReference: Normalised reference.
        """

        cleaned_url = url.strip() if url and url.strip() else None
        return cls(
            tool_name=normalize_tool_name(name),
            display_name=name.strip(),
            url=cleaned_url,
            expected_hash=normalize_hash(expected_hash),
            target_platform=platform if platform is not None else infer_platform(cleaned_url),
            declared_by=frozenset({declared_by}),
            origins=frozenset({origin}),
            inferred=inferred,
        )

    @property
    def signature(self) -> tuple[str | None, str | None]:
        """Return the ``(url, expected_hash)`` pair used for conflict detection."""

        return self.url, self.expected_hash

    @property
    def is_name_only(self) -> bool:
        """Return ``True`` when the reference carries neither URL nor hash."""

        return self.url is None and self.expected_hash is None


AmbiguityReason = Literal["non-literal", "untokenizable"]
UNTOKENIZABLE_PLUGIN: Final[str] = "<query block>"


class AmbiguousReference(BaseModel):
    """Query source whose tool references cannot be read with certainty.

    ``non-literal`` entries are plugin arguments computed at run time.
    ``untokenizable`` entries are whole query blocks (``argument`` holds the
    block name, ``expression`` the tokenizer error) whose calls may have been
    missed; these always block packaging.
    """

    model_config = ConfigDict(frozen=True)

    artifact: str
    plugin: str
    argument: str
    expression: str
    line: int
    reason: AmbiguityReason = "non-literal"

    @property
    def subject(self) -> str:
        """Return the call or block the entry refers to."""

        if self.reason == "untokenizable":
            return f"query block {self.argument}"
        return f"{self.plugin}({self.argument}={self.expression})"

    def describe(self) -> str:
        """Return a one-line explanation including the source line."""

        if self.reason == "untokenizable":
            return f"line {self.line}: query block {self.argument} is not valid VQL ({self.expression})"
        return f"line {self.line}: {self.argument}={self.expression} is not a literal"


class ConflictEntry(BaseModel):
    """Incompatible declarations of the same tool, retained for the operator."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    candidates: tuple[ToolReference, ...]

    @property
    def declared_by(self) -> frozenset[str]:
        """Return every artifact involved in the conflict."""

        names: set[str] = set()
        for candidate in self.candidates:
            names.update(candidate.declared_by)
        return frozenset(names)


UnresolvedReason = Literal["no-url", "acquisition-failed"]


class UnresolvedEntry(BaseModel):
    """A tool with no usable download source."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    display_name: str
    reason: UnresolvedReason
    declared_by: frozenset[str]
    detail: str | None = None


class DependencyManifest(BaseModel):
    """Deduplicated dependency view of a scanned corpus, immutable once built."""

    model_config = ConfigDict(frozen=True)

    resolved: tuple[ToolReference, ...] = ()
    conflicts: tuple[ConflictEntry, ...] = ()
    unresolved: tuple[UnresolvedEntry, ...] = ()
    ambiguous: tuple[AmbiguousReference, ...] = ()
    artifact_calls: tuple[tuple[str, tuple[str, ...]], ...] = ()

    @property
    def tools(self) -> Mapping[str, ToolReference]:
        """Return a read-only mapping from tool name to resolved reference."""

        return MappingProxyType({reference.tool_name: reference for reference in self.resolved})

    def referenced_by(self, artifact: str) -> tuple[ToolReference, ...]:
        """Return resolved references declared by ``artifact``."""

        return tuple(ref for ref in self.resolved if artifact in ref.declared_by)

    def conflicts_for(self, artifact: str) -> tuple[ConflictEntry, ...]:
        """Return conflicts involving ``artifact``."""

        return tuple(entry for entry in self.conflicts if artifact in entry.declared_by)

    def unresolved_for(self, artifact: str) -> tuple[UnresolvedEntry, ...]:
        """Return unresolved entries declared by ``artifact``."""

        return tuple(entry for entry in self.unresolved if artifact in entry.declared_by)

    def ambiguous_for(self, artifact: str) -> tuple[AmbiguousReference, ...]:
        """Return ambiguous plugin arguments found in ``artifact``."""

        return tuple(entry for entry in self.ambiguous if entry.artifact == artifact)

    def calls_for(self, artifact: str) -> tuple[str, ...]:
        """Return the artifacts invoked by ``artifact``'s query source."""

        for name, calls in self.artifact_calls:
            if name == artifact:
                return calls
        return ()

    def tool_names(self) -> tuple[str, ...]:
        """Return every referenced tool name, sorted."""

        names: set[str] = {ref.tool_name for ref in self.resolved}
        names.update(entry.tool_name for entry in self.conflicts)
        names.update(entry.tool_name for entry in self.unresolved)
        return tuple(sorted(names))


class AcquiredTool(BaseModel):
    """A verified tool binary available on local disk."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    filename: str
    local_path: Path
    actual_hash: str
    size_bytes: int
    platform: Platform
    acquired_at: datetime
    url: str | None = None
    from_cache: bool = False


def union_declared_by(references: Iterable[ToolReference]) -> frozenset[str]:
    """Return the union of ``declared_by`` across ``references``."""

    names: set[str] = set()
    for reference in references:
        names.update(reference.declared_by)
    return frozenset(names)


__all__ = [
    "AcquiredTool",
    "AmbiguityReason",
    "AmbiguousReference",
    "ArtifactDefinition",
    "ArtifactParameter",
    "ArtifactType",
    "ConflictEntry",
    "DeclaredTool",
    "DependencyManifest",
    "QueryBlock",
    "ToolReference",
    "UNKNOWN",
    "UNTOKENIZABLE_PLUGIN",
    "UnresolvedEntry",
    "UnresolvedReason",
    "normalize_hash",
    "normalize_tool_name",
    "union_declared_by",
]
