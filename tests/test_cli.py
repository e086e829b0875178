# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Command-line tests covering exit codes and written outputs."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest
from conftest import CorpusBuilder, sha256_bytes
from typer.testing import CliRunner

from artifact_bundler.acquisition import ToolCache, cache_key
from artifact_bundler.cli.app import app
from artifact_bundler.config import CONFIG_FILENAME
from artifact_bundler.models import ToolReference
from artifact_bundler.platforms import Platform

CHAINSAW_URL = "https://example/chainsaw.zip"
CHAINSAW = b"chainsaw offline build"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def isolated(corpus: CorpusBuilder, tmp_path: Path) -> CorpusBuilder:
    corpus.write(
        CONFIG_FILENAME,
        f'[registry]\nuse_builtin = false\n\n[acquisition]\ncache_dir = "{(tmp_path / "cache").as_posix()}"\n',
    )
    return corpus


def _invoke(runner: CliRunner, *args: str):  # type: ignore[no-untyped-def]
    return runner.invoke(app, [*args, "--no-color", "--no-emoji"])


def _seed_cache(tmp_path: Path) -> None:
    reference = ToolReference.create(
        "Chainsaw",
        declared_by="Custom.Chainsaw",
        origin="envelope",
        url=CHAINSAW_URL,
        expected_hash=sha256_bytes(CHAINSAW),
    )
    cache = ToolCache(tmp_path / "cache")
    staged = cache.staging_file()
    staged.write_bytes(CHAINSAW)
    cache.put(
        cache_key(reference, Platform.ANY),
        staged,
        digest=sha256_bytes(CHAINSAW),
        filename="chainsaw.zip",
        url=CHAINSAW_URL,
    )


def _conflicting(corpus: CorpusBuilder) -> None:
    for name in ("A", "B"):
        corpus.artifact(f"Custom.{name}", tools=[{"name": "Hayabusa", "url": "https://example/hayabusa.zip"}])
    corpus.artifact("Custom.C", tools=[{"name": "Hayabusa", "url": "https://other/hayabusa2.zip"}])


def test_scan_clean_exits_zero(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    isolated.artifact("Custom.Plain")
    report = tmp_path / "report.json"
    result = _invoke(runner, "scan", "--path", str(isolated.root), "--report", str(report))
    assert result.exit_code == 0, result.stdout
    assert "clean run" in result.stdout
    document = json.loads(report.read_text(encoding="utf-8"))
    assert document["exit_code"] == 0
    assert document["artifacts"]["found"] == 1


def test_scan_with_conflict_exits_one(runner: CliRunner, isolated: CorpusBuilder) -> None:
    _conflicting(isolated)
    result = _invoke(runner, "scan", "--path", str(isolated.root))
    assert result.exit_code == 1
    assert "dependency-conflict" in result.stdout


def test_scan_missing_path_exits_two(runner: CliRunner, tmp_path: Path) -> None:
    result = _invoke(runner, "scan", "--path", str(tmp_path / "absent"))
    assert result.exit_code == 2


def test_export_csv_writes_mapping_and_summary(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    _conflicting(isolated)
    isolated.artifact("Custom.Chainsaw", tools=[{"name": "Chainsaw", "url": CHAINSAW_URL}])
    out = tmp_path / "out" / "mapping.csv"
    result = _invoke(runner, "export", "--path", str(isolated.root), "--out", str(out), "--format", "csv")
    assert result.exit_code == 1
    with out.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert {(row["tool"], row["status"]) for row in rows} == {("chainsaw", "resolved"), ("hayabusa", "conflict")}
    assert (tmp_path / "out" / "mapping.summary.json").is_file()


def test_export_acquire_offline_marks_failures(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    isolated.artifact("Custom.Chainsaw", tools=[{"name": "Chainsaw", "url": CHAINSAW_URL}])
    out = tmp_path / "mapping.json"
    result = _invoke(runner, "export", "--path", str(isolated.root), "--out", str(out), "--acquire", "--offline")
    assert result.exit_code == 1
    tools = json.loads(out.read_text(encoding="utf-8"))["tools"]
    assert tools == [
        {
            "tool": "chainsaw",
            "display_name": "Chainsaw",
            "status": "unresolved",
            "url": "unresolved: acquisition-failed",
            "platform": "any",
            "expected_hash": None,
            "actual_hash": None,
            "declared_by": ["Custom.Chainsaw"],
            "origins": [],
            "inferred": False,
        }
    ]


def test_package_conflict_exits_two_without_output(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    _conflicting(isolated)
    out = tmp_path / "pkg"
    result = _invoke(runner, "package", "--path", str(isolated.root), "--select", "Custom.C", "--out", str(out), "--offline")
    assert result.exit_code == 2
    assert "package not built" in result.stdout
    assert not out.exists()


def test_package_offline_then_verify(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    isolated.artifact(
        "Custom.Chainsaw",
        tools=[{"name": "Chainsaw", "url": CHAINSAW_URL, "expected_hash": sha256_bytes(CHAINSAW)}],
        tags=["evtx"],
    )
    isolated.artifact("Custom.Unrelated")
    _seed_cache(tmp_path)
    out = tmp_path / "pkg"
    result = _invoke(runner, "package", "--path", str(isolated.root), "--select", "tag:evtx", "--out", str(out), "--offline")
    assert result.exit_code == 0, result.stdout
    assert (out / "tools" / "any" / "chainsaw.zip").read_bytes() == CHAINSAW
    manifest = json.loads((out / "manifest.json").read_text(encoding="utf-8"))
    assert [artifact["name"] for artifact in manifest["artifacts"]] == ["Custom.Chainsaw"]

    verified = _invoke(runner, "verify", "--package", str(out))
    assert verified.exit_code == 0

    (out / "artifacts" / "Custom" / "Chainsaw.yaml").write_text("tampered", encoding="utf-8")
    tampered = _invoke(runner, "verify", "--package", str(out))
    assert tampered.exit_code == 1


def test_package_unmatched_selection_is_fatal(runner: CliRunner, isolated: CorpusBuilder, tmp_path: Path) -> None:
    isolated.artifact("Custom.Plain")
    result = _invoke(runner, "package", "--path", str(isolated.root), "--select", "Nothing.*", "--out", str(tmp_path / "pkg"))
    assert result.exit_code == 2


def test_verify_without_manifest_exits_two(runner: CliRunner, tmp_path: Path) -> None:
    result = _invoke(runner, "verify", "--package", str(tmp_path))
    assert result.exit_code == 2
