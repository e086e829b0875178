# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for dependency resolution and conflict detection."""

from __future__ import annotations

import itertools
from concurrent.futures import ThreadPoolExecutor

from artifact_bundler.extraction.extractor import ExtractionResult
from artifact_bundler.models import AmbiguousReference, ToolReference
from artifact_bundler.platforms import Platform
from artifact_bundler.resolution import (
    DependencyResolver,
    RegistryEntry,
    StaticToolRegistry,
    mark_acquisition_failures,
)

H1 = "1" * 64
H2 = "2" * 64


def _result(artifact: str, *references: ToolReference, calls: frozenset[str] = frozenset()) -> ExtractionResult:
    return ExtractionResult(
        artifact=artifact,
        references=references,
        ambiguous=(),
        artifact_calls=calls,
        trace=(),
    )


def _hayabusa(artifact: str, url: str = "https://example/hayabusa.zip", digest: str | None = H1) -> ToolReference:
    return ToolReference.create(
        "Hayabusa",
        declared_by=artifact,
        origin="envelope",
        url=url,
        expected_hash=digest,
    )


def test_identical_declarations_merge() -> None:
    resolver = DependencyResolver()
    resolver.add_all([_result("A", _hayabusa("A")), _result("B", _hayabusa("B"))])
    manifest = resolver.resolve()
    assert manifest.conflicts == ()
    assert len(manifest.resolved) == 1
    assert manifest.resolved[0].declared_by == {"A", "B"}
    assert manifest.tools["hayabusa"].expected_hash == H1


def test_different_url_is_a_conflict() -> None:
    resolver = DependencyResolver()
    resolver.add_all(
        [
            _result("A", _hayabusa("A")),
            _result("B", _hayabusa("B")),
            _result("C", _hayabusa("C", url="https://other/hayabusa2.zip", digest=None)),
        ]
    )
    manifest = resolver.resolve()
    assert manifest.resolved == ()
    assert len(manifest.conflicts) == 1
    conflict = manifest.conflicts[0]
    assert conflict.tool_name == "hayabusa"
    assert conflict.declared_by == {"A", "B", "C"}
    assert {candidate.url for candidate in conflict.candidates} == {
        "https://example/hayabusa.zip",
        "https://other/hayabusa2.zip",
    }
    assert manifest.conflicts_for("C") == (conflict,)


def test_same_url_different_hash_is_a_conflict() -> None:
    resolver = DependencyResolver()
    resolver.add_all([_result("A", _hayabusa("A")), _result("B", _hayabusa("B", digest=H2))])
    assert len(resolver.resolve().conflicts) == 1


def test_resolution_is_order_independent() -> None:
    results = [
        _result("A", _hayabusa("A")),
        _result("B", _hayabusa("B", digest=H2)),
        _result("C", ToolReference.create("Hayabusa", declared_by="C", origin="plugin:FetchBinary")),
        _result("D", ToolReference.create("YARA", declared_by="D", origin="plugin:FetchBinary")),
    ]
    manifests = []
    for ordering in itertools.permutations(results):
        resolver = DependencyResolver()
        resolver.add_all(ordering)
        manifests.append(resolver.resolve())
    assert all(manifest == manifests[0] for manifest in manifests)


def test_concurrent_adds_are_safe() -> None:
    resolver = DependencyResolver()
    results = [_result(f"A{index:03d}", _hayabusa(f"A{index:03d}")) for index in range(200)]
    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(resolver.add, results))
    manifest = resolver.resolve()
    assert len(manifest.resolved[0].declared_by) == 200


def test_name_only_joins_single_signature() -> None:
    resolver = DependencyResolver()
    resolver.add_all(
        [
            _result("A", _hayabusa("A")),
            _result("B", ToolReference.create("hayabusa", declared_by="B", origin="plugin:FetchBinary")),
        ]
    )
    manifest = resolver.resolve()
    assert manifest.resolved[0].declared_by == {"A", "B"}
    assert manifest.resolved[0].url == "https://example/hayabusa.zip"


def test_name_only_without_registry_is_unresolved() -> None:
    resolver = DependencyResolver()
    resolver.add(_result("A", ToolReference.create("Mystery", declared_by="A", origin="plugin:FetchBinary")))
    manifest = resolver.resolve()
    assert manifest.resolved == ()
    assert manifest.unresolved[0].tool_name == "mystery"
    assert manifest.unresolved[0].reason == "no-url"


def test_name_only_resolved_from_registry() -> None:
    registry = StaticToolRegistry(
        [RegistryEntry(name="YARA", url="https://example/yara-win64.zip", platform=Platform.WINDOWS)]
    )
    resolver = DependencyResolver(registry)
    resolver.add(_result("A", ToolReference.create("yara", declared_by="A", origin="plugin:FetchBinary")))
    reference = resolver.resolve().resolved[0]
    assert reference.url == "https://example/yara-win64.zip"
    assert reference.target_platform is Platform.WINDOWS
    assert "registry" in reference.origins


def test_hash_disagreeing_with_registry_is_a_conflict() -> None:
    registry = StaticToolRegistry([RegistryEntry(name="YARA", url="https://example/yara.zip", expected_hash=H1)])
    resolver = DependencyResolver(registry)
    resolver.add(_result("A", ToolReference.create("YARA", declared_by="A", origin="envelope", expected_hash=H2)))
    manifest = resolver.resolve()
    assert len(manifest.conflicts) == 1
    assert any("registry" in candidate.origins for candidate in manifest.conflicts[0].candidates)


def _tool(artifact: str, platform: Platform) -> ToolReference:
    return ToolReference.create(
        "Tool",
        declared_by=artifact,
        origin="envelope",
        url="https://x/t.zip",
        platform=platform,
    )


def test_platform_disagreement_is_a_conflict() -> None:
    resolver = DependencyResolver()
    resolver.add_all(
        [
            _result("A", _tool("A", Platform.WINDOWS)),
            _result("B", _tool("B", Platform.LINUX)),
        ]
    )
    manifest = resolver.resolve()
    assert len(manifest.conflicts) == 1
    assert {candidate.target_platform for candidate in manifest.conflicts[0].candidates} == {
        Platform.WINDOWS,
        Platform.LINUX,
    }


def test_calls_and_ambiguous_are_carried() -> None:
    resolver = DependencyResolver()
    ambiguous = AmbiguousReference(artifact="A", plugin="p", argument="ToolName", expression="x", line=3)
    resolver.add(
        ExtractionResult(
            artifact="A",
            references=(),
            ambiguous=(ambiguous,),
            artifact_calls=frozenset({"B", "C"}),
            trace=(),
        )
    )
    manifest = resolver.resolve()
    assert manifest.calls_for("A") == ("B", "C")
    assert manifest.ambiguous_for("A") == (ambiguous,)


def test_mark_acquisition_failures_moves_tool() -> None:
    resolver = DependencyResolver()
    resolver.add(_result("A", _hayabusa("A")))
    manifest = resolver.resolve()
    updated = mark_acquisition_failures(manifest, {"hayabusa": "HTTP 404 from https://example/hayabusa.zip"})
    assert manifest.resolved
    assert updated.resolved == ()
    assert updated.unresolved[0].reason == "acquisition-failed"
    assert updated.unresolved_for("A")[0].detail.startswith("HTTP 404")
