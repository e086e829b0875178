# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Filesystem scanning for artifact definition files."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path

from ..errors import CorpusNotFoundError


@dataclass(slots=True)
class CorpusScanner:
    """Locate artifact definition documents beneath ``corpus_root``."""

    corpus_root: Path
    include: Sequence[str] = ("*.yaml", "*.yml")
    exclude: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.corpus_root.is_dir():
            raise CorpusNotFoundError(f"artifact corpus not found: {self.corpus_root}")

    def definition_files(self) -> tuple[Path, ...]:
        """Return sorted definition file paths, skipping hidden directories."""

        paths: list[Path] = []
        for candidate in self.corpus_root.rglob("*"):
            if not candidate.is_file():
                continue
            relative = candidate.relative_to(self.corpus_root)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            if not any(fnmatch(candidate.name, pattern) for pattern in self.include):
                continue
            if any(fnmatch(relative.as_posix(), pattern) for pattern in self.exclude):
                continue
            paths.append(candidate)
        return tuple(sorted(paths))

    def __iter__(self) -> Iterator[Path]:
        return iter(self.definition_files())


__all__ = ["CorpusScanner"]
