# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Structured run report built from whatever state a run produced."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..acquisition.service import AcquisitionReport
from ..corpus.identity import CorpusIdentity
from ..errors import BlockingDependency, IssueKind
from ..models import ArtifactDefinition, DependencyManifest, ToolReference

REPORT_SCHEMA_VERSION: Final[int] = 1

EXIT_CLEAN: Final[int] = 0
EXIT_ISSUES: Final[int] = 1
EXIT_FATAL: Final[int] = 2

ToolStatus = Literal["resolved", "conflict", "unresolved"]


class Issue(BaseModel):
    """A recoverable problem surfaced to the operator."""

    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    artifact: str | None = None
    tool: str | None = None
    message: str


class ArtifactStats(BaseModel):
    """Counts describing the scanned corpus."""

    model_config = ConfigDict(frozen=True)

    found: int = 0
    parsed_cleanly: int = 0
    degraded: int = 0
    duplicates: int = 0


class ToolStats(BaseModel):
    """Counts describing tool resolution and acquisition."""

    model_config = ConfigDict(frozen=True)

    referenced: int = 0
    resolved: int = 0
    conflicting: int = 0
    unresolved: int = 0
    ambiguous: int = 0
    inferred: int = 0
    acquired: int = 0
    acquisition_failed: int = 0


class PackageSummary(BaseModel):
    """Where a package was written and what it holds."""

    model_config = ConfigDict(frozen=True)

    output_path: str
    manifest_path: str
    archive_path: str | None = None
    artifacts: int
    tools: int


class MappingRow(BaseModel):
    """One line of the tool mapping written by ``export``."""

    model_config = ConfigDict(frozen=True)

    tool: str
    display_name: str
    status: ToolStatus
    url: str
    platform: str
    expected_hash: str | None = None
    actual_hash: str | None = None
    declared_by: tuple[str, ...] = ()
    origins: tuple[str, ...] = ()
    inferred: bool = False


class RunReport(BaseModel):
    """Machine-readable summary of a scan, export, or package run."""

    model_config = ConfigDict(frozen=True)

    schema_version: int = REPORT_SCHEMA_VERSION
    command: str
    started_at: datetime
    finished_at: datetime
    corpus: CorpusIdentity | None = None
    artifacts: ArtifactStats = Field(default_factory=ArtifactStats)
    tools: ToolStats = Field(default_factory=ToolStats)
    issues: tuple[Issue, ...] = ()
    package: PackageSummary | None = None
    cancelled: bool = False
    fatal_error: str | None = None

    @property
    def exit_code(self) -> int:
        """Return 0 for a clean run, 1 when issues were reported, 2 on fatal error."""

        if self.fatal_error is not None:
            return EXIT_FATAL
        if self.issues or self.cancelled:
            return EXIT_ISSUES
        return EXIT_CLEAN

    def issues_of(self, kind: IssueKind) -> tuple[Issue, ...]:
        """Return issues of ``kind``."""

        return tuple(issue for issue in self.issues if issue.kind is kind)

    def to_document(self) -> dict[str, object]:
        """Return the JSON-compatible representation including the exit code."""

        document = self.model_dump(mode="json")
        document["exit_code"] = self.exit_code
        return document


def _describe_candidate(candidate: ToolReference) -> str:
    url = candidate.url or "<name only>"
    digest = candidate.expected_hash or "no hash"
    declared = ", ".join(sorted(candidate.declared_by)) or "registry"
    return f"{url} ({digest}, {candidate.target_platform.value}) declared by {declared}"


def collect_issues(
    *,
    degraded: Sequence[ArtifactDefinition] = (),
    manifest: DependencyManifest | None = None,
    acquisition: AcquisitionReport | None = None,
    blocking: Sequence[BlockingDependency] = (),
    missing_calls: Sequence[tuple[str, str]] = (),
    unmatched_selection: Sequence[str] = (),
    cancelled_reason: str | None = None,
) -> tuple[Issue, ...]:
    """Translate stage outputs into a flat, ordered issue list."""

    issues: list[Issue] = []
    for artifact in degraded:
        issues.append(
            Issue(
                kind=IssueKind.PARSE_DEGRADED,
                artifact=artifact.name,
                message="; ".join(artifact.parse_messages) or "degraded parse",
            )
        )
    if manifest is not None:
        for ambiguous in manifest.ambiguous:
            issues.append(
                Issue(
                    kind=IssueKind.EXTRACTION_AMBIGUOUS,
                    artifact=ambiguous.artifact,
                    tool=ambiguous.plugin,
                    message=ambiguous.describe(),
                )
            )
        for conflict in manifest.conflicts:
            detail = " | ".join(_describe_candidate(candidate) for candidate in conflict.candidates)
            issues.append(
                Issue(
                    kind=IssueKind.DEPENDENCY_CONFLICT,
                    artifact=", ".join(sorted(conflict.declared_by)),
                    tool=conflict.tool_name,
                    message=f"{len(conflict.candidates)} incompatible declarations: {detail}",
                )
            )
        for entry in manifest.unresolved:
            issues.append(
                Issue(
                    kind=IssueKind.DEPENDENCY_UNRESOLVED,
                    artifact=", ".join(sorted(entry.declared_by)),
                    tool=entry.tool_name,
                    message=f"unresolved: {entry.reason}" + (f" ({entry.detail})" if entry.detail else ""),
                )
            )
    if acquisition is not None:
        for name, failure in sorted(acquisition.failures.items()):
            issues.append(Issue(kind=IssueKind.ACQUISITION_FAILURE, tool=name, message=failure.detail))
    for caller, called in missing_calls:
        issues.append(
            Issue(
                kind=IssueKind.ARTIFACT_MISSING,
                artifact=caller,
                message=f"calls {called}, which is not in the corpus",
            )
        )
    for token in unmatched_selection:
        issues.append(Issue(kind=IssueKind.ARTIFACT_MISSING, message=f"selection token '{token}' matched no artifact"))
    for entry in blocking:
        issues.append(
            Issue(kind=IssueKind.PACKAGE_INCOMPLETE, artifact=entry.artifact, tool=entry.tool, message=entry.reason)
        )
    if cancelled_reason is not None:
        issues.append(Issue(kind=IssueKind.CANCELLED, message=cancelled_reason))
    return tuple(issues)


def tool_stats(manifest: DependencyManifest | None, acquisition: AcquisitionReport | None) -> ToolStats:
    """Return tool counts for ``manifest`` and optional ``acquisition`` outcome."""

    if manifest is None:
        return ToolStats()
    failed = len(acquisition.failures) if acquisition is not None else 0
    return ToolStats(
        referenced=len(manifest.tool_names()),
        resolved=len(manifest.resolved),
        conflicting=len(manifest.conflicts),
        unresolved=len(manifest.unresolved),
        ambiguous=len(manifest.ambiguous),
        inferred=sum(1 for reference in manifest.resolved if reference.inferred),
        acquired=len(acquisition.acquired) if acquisition is not None else 0,
        acquisition_failed=failed,
    )


def mapping_rows(manifest: DependencyManifest, acquisition: AcquisitionReport | None = None) -> list[MappingRow]:
    """Return the per-tool mapping, one row per resolved tool or conflict candidate."""

    rows: list[MappingRow] = []
    for reference in manifest.resolved:
        acquired = acquisition.tool(reference.tool_name, reference.target_platform) if acquisition else None
        actual_hash = acquired.actual_hash if acquired else None
        rows.append(_row(reference, "resolved", reference.url or "unresolved", actual_hash))
    for conflict in manifest.conflicts:
        for candidate in conflict.candidates:
            rows.append(_row(candidate, "conflict", candidate.url or "unresolved", None))
    for entry in manifest.unresolved:
        rows.append(
            MappingRow(
                tool=entry.tool_name,
                display_name=entry.display_name,
                status="unresolved",
                url=f"unresolved: {entry.reason}",
                platform="any",
                declared_by=tuple(sorted(entry.declared_by)),
            )
        )
    rows.sort(key=lambda row: (row.tool, row.status, row.url, row.platform))
    return rows


def _row(reference: ToolReference, status: ToolStatus, url: str, actual_hash: str | None) -> MappingRow:
    return MappingRow(
        tool=reference.tool_name,
        display_name=reference.display_name,
        status=status,
        url=url,
        platform=reference.target_platform.value,
        expected_hash=reference.expected_hash,
        actual_hash=actual_hash,
        declared_by=tuple(sorted(reference.declared_by)),
        origins=tuple(sorted(reference.origins)),
        inferred=reference.inferred,
    )


__all__ = [
    "ArtifactStats",
    "EXIT_CLEAN",
    "EXIT_FATAL",
    "EXIT_ISSUES",
    "Issue",
    "MappingRow",
    "PackageSummary",
    "REPORT_SCHEMA_VERSION",
    "RunReport",
    "ToolStats",
    "collect_issues",
    "mapping_rows",
    "tool_stats",
]
