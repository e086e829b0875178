# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Aggregate per-artifact tool references into a dependency manifest.

Conflicts are a first-class outcome: when two declarations of the same tool
disagree on ``(url, expected_hash)`` every candidate is kept and none is
chosen. Declarations are sorted by artifact name before comparison so the
manifest does not depend on the order in which artifacts were processed.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence

from ..extraction.extractor import ExtractionResult
from ..models import (
    AmbiguousReference,
    ConflictEntry,
    DependencyManifest,
    ToolReference,
    UnresolvedEntry,
    union_declared_by,
)
from ..platforms import Platform
from .registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

Signature = tuple[str | None, str | None]


class DependencyResolver:
    """Collect extraction results from concurrent workers and resolve them once."""

    def __init__(self, registry: ToolRegistry | None = None) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        self._references: list[ToolReference] = []
        self._ambiguous: list[AmbiguousReference] = []
        self._calls: dict[str, frozenset[str]] = {}

    def add(self, result: ExtractionResult) -> None:
        """Merge one artifact's extraction result; safe to call from any thread."""

        with self._lock:
            self._references.extend(result.references)
            self._ambiguous.extend(result.ambiguous)
            self._calls[result.artifact] = self._calls.get(result.artifact, frozenset()) | result.artifact_calls

    def add_all(self, results: Iterable[ExtractionResult]) -> None:
        """Merge several extraction results."""

        for result in results:
            self.add(result)

    def resolve(self) -> DependencyManifest:
        """Build the immutable manifest from everything added so far.

        Returns:
            DependencyManifest: Resolved, conflicting, unresolved, and ambiguous entries.
        """

        with self._lock:
            references = list(self._references)
            ambiguous = list(self._ambiguous)
            calls = dict(self._calls)

        groups: dict[str, list[ToolReference]] = defaultdict(list)
        for reference in references:
            groups[reference.tool_name].append(reference)

        resolved: list[ToolReference] = []
        conflicts: list[ConflictEntry] = []
        unresolved: list[UnresolvedEntry] = []
        for tool_name in sorted(groups):
            outcome = self._resolve_group(tool_name, sorted(groups[tool_name], key=_declaration_key))
            if isinstance(outcome, ToolReference):
                resolved.append(outcome)
            elif isinstance(outcome, ConflictEntry):
                LOGGER.info("conflicting declarations for tool '%s'", tool_name)
                conflicts.append(outcome)
            else:
                unresolved.append(outcome)

        return DependencyManifest(
            resolved=tuple(resolved),
            conflicts=tuple(conflicts),
            unresolved=tuple(unresolved),
            ambiguous=tuple(sorted(ambiguous, key=lambda item: (item.artifact, item.line, item.plugin, item.argument))),
            artifact_calls=tuple((name, tuple(sorted(calls[name]))) for name in sorted(calls)),
        )

    def _resolve_group(
        self,
        tool_name: str,
        declarations: Sequence[ToolReference],
    ) -> ToolReference | ConflictEntry | UnresolvedEntry:
        by_signature: dict[Signature, list[ToolReference]] = defaultdict(list)
        name_only: list[ToolReference] = []
        for declaration in declarations:
            if declaration.is_name_only:
                name_only.append(declaration)
            else:
                by_signature[declaration.signature].append(declaration)

        candidates = [_merge(group) for _, group in sorted(by_signature.items(), key=_signature_sort_key)]
        if len(candidates) > 1:
            if name_only:
                candidates.append(_merge(name_only))
            return ConflictEntry(tool_name=tool_name, candidates=tuple(candidates))

        if len(candidates) == 1:
            candidate = candidates[0]
            platforms = {ref.target_platform for ref in by_signature[candidate.signature]} - {Platform.ANY}
            if len(platforms) > 1:
                split = [
                    _merge([ref for ref in by_signature[candidate.signature] if ref.target_platform is platform])
                    for platform in sorted(platforms, key=lambda item: item.value)
                ]
                return ConflictEntry(tool_name=tool_name, candidates=tuple(split))
            merged = _merge([*by_signature[candidate.signature], *name_only])
            if platforms:
                merged = merged.model_copy(update={"target_platform": platforms.pop()})
            if merged.url is None:
                return self._from_registry(merged)
            return merged

        return self._from_registry(_merge(name_only))

    def _from_registry(self, merged: ToolReference) -> ToolReference | ConflictEntry | UnresolvedEntry:
        entry = self._registry.lookup(merged.tool_name) if self._registry is not None else None
        if entry is None:
            LOGGER.debug("tool '%s' has no download URL", merged.tool_name)
            return UnresolvedEntry(
                tool_name=merged.tool_name,
                display_name=merged.display_name,
                reason="no-url",
                declared_by=merged.declared_by,
                detail="no URL declared and no registry entry",
            )
        if merged.expected_hash and entry.expected_hash and merged.expected_hash != entry.expected_hash:
            registry_candidate = merged.model_copy(
                update={
                    "url": entry.url,
                    "expected_hash": entry.expected_hash,
                    "target_platform": entry.platform,
                    "origins": frozenset({"registry"}),
                    "declared_by": frozenset(),
                }
            )
            return ConflictEntry(tool_name=merged.tool_name, candidates=(merged, registry_candidate))
        LOGGER.debug("tool '%s' resolved from registry: %s", merged.tool_name, entry.url)
        platform = merged.target_platform if merged.target_platform is not Platform.ANY else entry.platform
        return merged.model_copy(
            update={
                "url": entry.url,
                "expected_hash": merged.expected_hash or entry.expected_hash,
                "target_platform": platform,
                "origins": merged.origins | {"registry"},
            }
        )


def mark_acquisition_failures(manifest: DependencyManifest, failures: Mapping[str, str]) -> DependencyManifest:
    """Return a copy of ``manifest`` with failed tools moved to ``unresolved``.

    Args:
        manifest: Manifest produced by :meth:`DependencyResolver.resolve`.
        failures: Mapping of tool name to failure description.

    Returns:
        DependencyManifest: New manifest; ``manifest`` itself is unchanged.
    """

    if not failures:
        return manifest
    kept: list[ToolReference] = []
    unresolved = list(manifest.unresolved)
    for reference in manifest.resolved:
        detail = failures.get(reference.tool_name)
        if detail is None:
            kept.append(reference)
            continue
        unresolved.append(
            UnresolvedEntry(
                tool_name=reference.tool_name,
                display_name=reference.display_name,
                reason="acquisition-failed",
                declared_by=reference.declared_by,
                detail=detail,
            )
        )
    return manifest.model_copy(
        update={
            "resolved": tuple(kept),
            "unresolved": tuple(sorted(unresolved, key=lambda entry: entry.tool_name)),
        }
    )


def _declaration_key(reference: ToolReference) -> tuple[str, str, str, str]:
    return (
        min(reference.declared_by, default=""),
        reference.url or "",
        reference.expected_hash or "",
        reference.target_platform.value,
    )


def _signature_sort_key(item: tuple[Signature, list[ToolReference]]) -> tuple[str, str]:
    (url, expected_hash), _ = item
    return url or "", expected_hash or ""


def _merge(references: Sequence[ToolReference]) -> ToolReference:
    """Union ``references`` that share a signature, keeping the first as the base."""

    first = references[0]
    origins: set[str] = set()
    for reference in references:
        origins.update(reference.origins)
    return first.model_copy(
        update={
            "declared_by": union_declared_by(references),
            "origins": frozenset(origins),
            "inferred": all(reference.inferred for reference in references),
        }
    )


__all__ = ["DependencyResolver", "mark_acquisition_failures"]
