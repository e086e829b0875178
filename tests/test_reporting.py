# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for run reports, mapping export, and the console summary."""

from __future__ import annotations

import csv
import json
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console

from artifact_bundler.acquisition import AcquisitionReport
from artifact_bundler.config.models import OutputConfig
from artifact_bundler.errors import AcquisitionFailure, IssueKind
from artifact_bundler.models import ConflictEntry, DependencyManifest, ToolReference, UnresolvedEntry
from artifact_bundler.reporting import (
    EXIT_CLEAN,
    EXIT_FATAL,
    EXIT_ISSUES,
    RunReport,
    export_mapping,
    mapping_rows,
    render_summary,
    summary_path_for,
)
from artifact_bundler.reporting.report import collect_issues, tool_stats


def _manifest() -> DependencyManifest:
    chainsaw = ToolReference.create("Chainsaw", declared_by="A", origin="envelope", url="https://example/chainsaw.zip")
    first = ToolReference.create("Hayabusa", declared_by="B", origin="envelope", url="https://example/h1.zip")
    second = ToolReference.create("Hayabusa", declared_by="C", origin="envelope", url="https://other/h2.zip")
    return DependencyManifest(
        resolved=(chainsaw,),
        conflicts=(ConflictEntry(tool_name="hayabusa", candidates=(first, second)),),
        unresolved=(
            UnresolvedEntry(
                tool_name="mystery",
                display_name="Mystery",
                reason="acquisition-failed",
                declared_by=frozenset({"D"}),
                detail="HTTP 404",
            ),
        ),
    )


def _report(**overrides: object) -> RunReport:
    now = datetime.now(UTC)
    manifest = _manifest()
    fields: dict[str, object] = {
        "command": "export",
        "started_at": now,
        "finished_at": now,
        "tools": tool_stats(manifest, None),
        "issues": collect_issues(manifest=manifest),
    }
    fields.update(overrides)
    return RunReport(**fields)  # type: ignore[arg-type]


def test_exit_codes() -> None:
    now = datetime.now(UTC)
    assert RunReport(command="scan", started_at=now, finished_at=now).exit_code == EXIT_CLEAN
    assert _report().exit_code == EXIT_ISSUES
    assert _report(fatal_error="boom").exit_code == EXIT_FATAL
    assert RunReport(command="scan", started_at=now, finished_at=now, cancelled=True).exit_code == EXIT_ISSUES


def test_collect_issues_kinds() -> None:
    issues = collect_issues(
        manifest=_manifest(),
        acquisition=AcquisitionReport(failures={"mystery": AcquisitionFailure("mystery", "HTTP 404")}),
        missing_calls=[("A", "Windows.Missing")],
        unmatched_selection=["Nope.*"],
        cancelled_reason="interrupted by operator",
    )
    kinds = [issue.kind for issue in issues]
    assert IssueKind.DEPENDENCY_CONFLICT in kinds
    assert IssueKind.DEPENDENCY_UNRESOLVED in kinds
    assert IssueKind.ACQUISITION_FAILURE in kinds
    assert kinds.count(IssueKind.ARTIFACT_MISSING) == 2
    assert kinds[-1] is IssueKind.CANCELLED
    conflict = next(issue for issue in issues if issue.kind is IssueKind.DEPENDENCY_CONFLICT)
    assert conflict.artifact == "B, C"
    assert "https://other/h2.zip" in conflict.message


def test_mapping_rows_cover_every_state() -> None:
    rows = mapping_rows(_manifest())
    by_status = {(row.tool, row.status) for row in rows}
    assert by_status == {("chainsaw", "resolved"), ("hayabusa", "conflict"), ("mystery", "unresolved")}
    assert [row.tool for row in rows].count("hayabusa") == 2
    mystery = next(row for row in rows if row.tool == "mystery")
    assert mystery.url == "unresolved: acquisition-failed"


def test_export_json_and_summary(tmp_path: Path) -> None:
    out = tmp_path / "mapping.json"
    summary = export_mapping(_report(), mapping_rows(_manifest()), out, fmt="json")
    assert summary == summary_path_for(out) == tmp_path / "mapping.summary.json"
    tools = json.loads(out.read_text(encoding="utf-8"))["tools"]
    assert {entry["tool"] for entry in tools} == {"chainsaw", "hayabusa", "mystery"}
    stats = json.loads(summary.read_text(encoding="utf-8"))
    assert stats["tools"]["conflicting"] == 1
    assert stats["issue_counts"]["dependency-conflict"] == 1
    assert stats["exit_code"] == EXIT_ISSUES


def test_export_csv(tmp_path: Path) -> None:
    out = tmp_path / "mapping.csv"
    export_mapping(_report(), mapping_rows(_manifest()), out, fmt="csv")
    with out.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 4
    chainsaw = next(row for row in rows if row["tool"] == "chainsaw")
    assert chainsaw["declared_by"] == "A"
    assert chainsaw["inferred"] == "false"
    assert chainsaw["expected_hash"] == ""


def test_render_summary_lists_issues() -> None:
    console = Console(record=True, width=200, color_system=None)
    render_summary(_report(), OutputConfig(color=False, emoji=False), console=console)
    text = console.export_text()
    assert "export summary" in text
    assert "Tools referenced" in text
    assert "dependency-conflict" in text
    assert "mystery" in text


def test_report_document_includes_exit_code() -> None:
    document = _report(fatal_error="disk full").to_document()
    assert document["exit_code"] == EXIT_FATAL
    assert document["fatal_error"] == "disk full"
    assert document["issues"][0]["kind"] == "dependency-conflict"
