# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for corpus provenance."""

from __future__ import annotations

from pathlib import Path

import pytest

from artifact_bundler.corpus.identity import compute_corpus_checksum, identify_corpus, read_git_commit

COMMIT = "0123456789abcdef0123456789abcdef01234567"


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_checksum_covers_paths_and_contents(tmp_path: Path) -> None:
    first = _write(tmp_path / "a.yaml", "name: A\n")
    second = _write(tmp_path / "b.yaml", "name: B\n")
    baseline = compute_corpus_checksum(tmp_path, [second, first])

    assert baseline == compute_corpus_checksum(tmp_path, [first, second])
    second.write_text("name: B2\n", encoding="utf-8")
    assert compute_corpus_checksum(tmp_path, [first, second]) != baseline


def test_commit_from_loose_ref_and_version_file(tmp_path: Path) -> None:
    _write(tmp_path / ".git" / "HEAD", "ref: refs/heads/main\n")
    _write(tmp_path / ".git" / "refs" / "heads" / "main", COMMIT + "\n")
    _write(tmp_path / "VERSION", "0.7.5\nextra\n")
    definition = _write(tmp_path / "artifacts" / "a.yaml", "name: A\n")

    identity = identify_corpus(tmp_path / "artifacts", [definition])

    assert identity.commit == COMMIT
    assert identity.version is None
    assert identify_corpus(tmp_path, [definition]).version == "0.7.5"
    assert identity.file_count == 1


def test_commit_from_packed_refs(tmp_path: Path) -> None:
    _write(tmp_path / ".git" / "HEAD", "ref: refs/heads/release\n")
    _write(tmp_path / ".git" / "packed-refs", f"# pack-refs with: peeled\n{COMMIT} refs/heads/release\n")
    assert read_git_commit(tmp_path) == COMMIT


def test_detached_head(tmp_path: Path) -> None:
    _write(tmp_path / ".git" / "HEAD", COMMIT + "\n")
    assert read_git_commit(tmp_path / "nested") == COMMIT


def test_undecodable_version_and_head_degrade_to_none(tmp_path: Path) -> None:
    (tmp_path / "VERSION").write_bytes(b"\xff\xfe1.0")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_bytes(b"\xff\xferef: refs/heads/main")
    definition = _write(tmp_path / "a.yaml", "name: A\n")

    identity = identify_corpus(tmp_path, [definition])

    assert identity.version is None
    assert identity.commit is None
    assert identity.unreadable == ()


def test_git_file_without_gitdir_pointer(tmp_path: Path) -> None:
    _write(tmp_path / ".git", "not a pointer\n")
    assert read_git_commit(tmp_path) is None


def test_unreadable_definition_is_hashed_by_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    readable = _write(tmp_path / "a.yaml", "name: A\n")
    locked = _write(tmp_path / "b.yaml", "name: B\n")
    original = Path.read_bytes

    def read_bytes(self: Path) -> bytes:
        if self == locked:
            raise PermissionError(13, "Permission denied", str(self))
        return original(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    identity = identify_corpus(tmp_path, [readable, locked])

    assert identity.unreadable == ("b.yaml",)
    assert identity.file_count == 2
    assert len(identity.checksum) == 64
