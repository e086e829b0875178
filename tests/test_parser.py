# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the tolerant artifact definition parser."""

from __future__ import annotations

from pathlib import Path

from conftest import CorpusBuilder

from artifact_bundler.corpus.parser import ArtifactParser
from artifact_bundler.corpus.scanner import CorpusScanner
from artifact_bundler.models import UNKNOWN, ArtifactType
from artifact_bundler.platforms import Platform

BROKEN_HEADER = """\
name: Windows.Detection.Yara
author: @reserved
description: scans with yara
sources:
  - query: |
      LET bin <= SELECT * FROM Artifact.Generic.Utils.FetchBinary(ToolName="YARA")
      SELECT * FROM execve(argv=[bin[0].OSPath, "-r", "rules.yar"])
"""


def test_parses_full_envelope(corpus: CorpusBuilder) -> None:
    path = corpus.artifact(
        "Windows.EventLogs.Hayabusa",
        tools=[{"name": "Hayabusa", "url": "https://example/hayabusa.zip", "expected_hash": "SHA256:ABCD"}],
        tags=["triage", "evtx"],
        parameters=[{"name": "Rules", "default": "default"}],
    )
    record = ArtifactParser().parse_file(path)
    assert record.name == "Windows.EventLogs.Hayabusa"
    assert record.artifact_type is ArtifactType.CLIENT
    assert not record.parse_error
    assert record.tags == ("triage", "evtx")
    assert record.parameter_default("rules") == "default"
    assert record.tools[0].url == "https://example/hayabusa.zip"
    assert record.queries[0].name == "Windows.EventLogs.Hayabusa/main"


def test_broken_header_salvages_query(tmp_path: Path) -> None:
    path = tmp_path / "yara.yaml"
    path.write_text(BROKEN_HEADER, encoding="utf-8")
    record = ArtifactParser().parse_file(path)
    assert record.parse_error
    assert record.name == "Windows.Detection.Yara"
    assert record.parse_messages[0].startswith("invalid YAML")
    assert len(record.queries) == 1
    assert 'ToolName="YARA"' in record.queries[0].query


def test_missing_optional_fields_default_to_unknown(tmp_path: Path) -> None:
    path = tmp_path / "minimal.yaml"
    path.write_text("name: Minimal\n", encoding="utf-8")
    record = ArtifactParser().parse_file(path)
    assert record.description == UNKNOWN
    assert record.author == UNKNOWN
    assert record.artifact_type is ArtifactType.UNKNOWN
    assert not record.parse_error


def test_malformed_fields_degrade_without_discarding(tmp_path: Path) -> None:
    path = tmp_path / "odd.yaml"
    path.write_text(
        "name: Odd\n"
        "author: [not, a, string]\n"
        "tools:\n"
        "  - url: https://example/nameless.zip\n"
        "  - name: Good\n"
        "    platform: win64\n"
        "sources:\n"
        "  - query: SELECT 1 FROM scope()\n",
        encoding="utf-8",
    )
    record = ArtifactParser().parse_file(path)
    assert record.parse_error
    assert record.author == UNKNOWN
    assert [tool.name for tool in record.tools] == ["Good"]
    assert record.tools[0].platform is Platform.WINDOWS
    assert len(record.queries) == 1


def test_missing_name_uses_file_stem(tmp_path: Path) -> None:
    path = tmp_path / "Fallback.Name.yaml"
    path.write_text("description: no name here\n", encoding="utf-8")
    record = ArtifactParser().parse_file(path)
    assert record.name == "Fallback.Name"
    assert record.parse_error


def test_non_mapping_document_is_salvaged(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    record = ArtifactParser().parse_file(path)
    assert record.parse_error
    assert record.name == "list"
    assert record.queries == ()


def test_scanner_skips_hidden_and_excluded(corpus: CorpusBuilder) -> None:
    corpus.artifact("Keep.Me")
    corpus.artifact("Skip.Me", filename="drafts/skip.yaml")
    corpus.write(".git/hidden.yaml", "name: Hidden\n")
    corpus.write("notes.txt", "not an artifact")
    scanner = CorpusScanner(corpus.root, include=("*.yaml",), exclude=("drafts/*",))
    assert [path.name for path in scanner.definition_files()] == ["Me.yaml"]
