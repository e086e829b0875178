# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Write machine-readable reports and tool mappings."""

from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Final, Literal

from ..errors import BundlerError
from .report import MappingRow, RunReport

MappingFormat = Literal["json", "csv"]
CSV_FIELDS: Final[tuple[str, ...]] = (
    "tool",
    "display_name",
    "status",
    "url",
    "platform",
    "expected_hash",
    "actual_hash",
    "declared_by",
    "origins",
    "inferred",
)
SUMMARY_SUFFIX: Final[str] = ".summary.json"


def _write_text(path: Path, payload: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise BundlerError(f"unable to write {path}: {exc}") from exc


def write_json_report(report: RunReport, path: Path) -> None:
    """Write the full run report as JSON.

    Args:
        report: Completed (possibly partial) run report.
        path: Destination path that receives the JSON payload.
    """

    _write_text(path, json.dumps(report.to_document(), indent=2) + "\n")


def summary_path_for(mapping_path: Path) -> Path:
    """Return the ``<stem>.summary.json`` sibling of ``mapping_path``."""

    return mapping_path.with_name(f"{mapping_path.stem}{SUMMARY_SUFFIX}")


def write_summary_json(report: RunReport, path: Path) -> None:
    """Write parse and tool statistics without the per-issue detail."""

    payload = {
        "schema_version": report.schema_version,
        "command": report.command,
        "finished_at": report.finished_at.isoformat(),
        "corpus": report.corpus.model_dump(mode="json") if report.corpus else None,
        "artifacts": report.artifacts.model_dump(mode="json"),
        "tools": report.tools.model_dump(mode="json"),
        "issue_counts": _issue_counts(report),
        "exit_code": report.exit_code,
    }
    _write_text(path, json.dumps(payload, indent=2) + "\n")


def write_mapping(rows: Sequence[MappingRow], path: Path, *, fmt: MappingFormat) -> None:
    """Write the tool mapping as JSON or CSV.

    Args:
        rows: Mapping rows from :func:`~artifact_bundler.reporting.report.mapping_rows`.
        path: Destination file.
        fmt: ``json`` or ``csv``.
    """

    if fmt == "json":
        payload = {"tools": [row.model_dump(mode="json") for row in rows]}
        _write_text(path, json.dumps(payload, indent=2) + "\n")
        return
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
            writer.writeheader()
            for row in rows:
                record = row.model_dump(mode="json")
                record["declared_by"] = ";".join(row.declared_by)
                record["origins"] = ";".join(row.origins)
                record["expected_hash"] = row.expected_hash or ""
                record["actual_hash"] = row.actual_hash or ""
                record["inferred"] = "true" if row.inferred else "false"
                writer.writerow(record)
    except OSError as exc:
        raise BundlerError(f"unable to write {path}: {exc}") from exc


def export_mapping(report: RunReport, rows: Sequence[MappingRow], path: Path, *, fmt: MappingFormat) -> Path:
    """Write the mapping to ``path`` and its statistics sibling; return the sibling path."""

    write_mapping(rows, path, fmt=fmt)
    summary = summary_path_for(path)
    write_summary_json(report, summary)
    return summary


def _issue_counts(report: RunReport) -> dict[str, int]:
    counts: dict[str, int] = {}
    for issue in report.issues:
        counts[issue.kind.value] = counts.get(issue.kind.value, 0) + 1
    return dict(sorted(counts.items()))


__all__ = [
    "CSV_FIELDS",
    "MappingFormat",
    "SUMMARY_SUFFIX",
    "export_mapping",
    "summary_path_for",
    "write_json_report",
    "write_mapping",
    "write_summary_json",
]
