# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Identify a corpus by content checksum, git commit, and version file.

Provenance is best effort: a file that cannot be read or decoded degrades
the corresponding field instead of aborting the scan.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

LOGGER = logging.getLogger(__name__)

VERSION_FILENAMES = ("VERSION", "version.txt")
_UNREADABLE_MARKER = b"\0<unreadable>"


class CorpusIdentity(BaseModel):
    """Provenance recorded in reports and package manifests."""

    model_config = ConfigDict(frozen=True)

    root: str
    checksum: str
    file_count: int
    commit: str | None = None
    version: str | None = None
    unreadable: tuple[str, ...] = ()


def compute_corpus_checksum(corpus_root: Path, paths: Sequence[Path], *, unreadable: list[str] | None = None) -> str:
    """Return a deterministic checksum for ``paths`` relative to ``corpus_root``.

    Files that cannot be read contribute their path and a fixed marker; their
    relative paths are appended to ``unreadable`` when given.
    """

    hasher = hashlib.sha256()
    for path in sorted(paths):
        relative_path = path.relative_to(corpus_root).as_posix()
        hasher.update(relative_path.encode("utf-8"))
        hasher.update(b"\0")
        try:
            hasher.update(path.read_bytes())
        except OSError as exc:
            LOGGER.warning("unable to hash %s: %s", path, exc)
            hasher.update(_UNREADABLE_MARKER)
            if unreadable is not None:
                unreadable.append(relative_path)
    return hasher.hexdigest()


def _read_first_line(path: Path) -> str | None:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("ignoring unreadable %s: %s", path, exc)
        return None
    lines = text.strip().splitlines()
    return (lines[0].strip() or None) if lines else None


def read_git_commit(start: Path) -> str | None:
    """Return the commit checked out in the repository containing ``start``.

    Reads ``.git/HEAD`` directly so no git executable is required. Returns
    ``None`` when no repository is found or its metadata cannot be read.
    """

    for directory in (start, *start.parents):
        git_dir = directory / ".git"
        if git_dir.is_file():
            pointer = _read_first_line(git_dir) or ""
            if not pointer.startswith("gitdir:"):
                return None
            git_dir = (directory / pointer.split(":", 1)[1].strip()).resolve()
        if not (git_dir / "HEAD").is_file():
            continue
        head = _read_first_line(git_dir / "HEAD")
        if head is None or not head.startswith("ref:"):
            return head
        ref = head.split(":", 1)[1].strip()
        ref_path = git_dir / ref
        if ref_path.is_file():
            return _read_first_line(ref_path)
        return _lookup_packed_ref(git_dir / "packed-refs", ref)
    return None


def _lookup_packed_ref(packed_refs: Path, ref: str) -> str | None:
    if not packed_refs.is_file():
        return None
    try:
        lines = packed_refs.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.warning("ignoring unreadable %s: %s", packed_refs, exc)
        return None
    for line in lines:
        if line.startswith(("#", "^")):
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref:
            return sha
    return None


def read_version(corpus_root: Path) -> str | None:
    """Return the first line of a ``VERSION`` file at the corpus root."""

    for filename in VERSION_FILENAMES:
        candidate = corpus_root / filename
        if candidate.is_file():
            return _read_first_line(candidate)
    return None


def identify_corpus(corpus_root: Path, paths: Sequence[Path]) -> CorpusIdentity:
    """Return the identity of the corpus made up of ``paths``."""

    unreadable: list[str] = []
    checksum = compute_corpus_checksum(corpus_root, paths, unreadable=unreadable)
    return CorpusIdentity(
        root=str(corpus_root),
        checksum=checksum,
        file_count=len(paths),
        commit=read_git_commit(corpus_root.resolve()),
        version=read_version(corpus_root),
        unreadable=tuple(unreadable),
    )


__all__ = [
    "CorpusIdentity",
    "compute_corpus_checksum",
    "identify_corpus",
    "read_git_commit",
    "read_version",
]
