# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Target platform enumeration and inference helpers."""

from __future__ import annotations

import re
from enum import Enum
from typing import Final
from urllib.parse import unquote, urlparse


class Platform(str, Enum):
    """Enumerate operating systems a tool binary can target."""

    WINDOWS = "windows"
    LINUX = "linux"
    DARWIN = "darwin"
    ANY = "any"

    @classmethod
    def parse(cls, raw: str | None) -> Platform:
        """Return the platform matching ``raw`` including common aliases.

        Args:
            raw: Free-form platform token such as ``"win64"`` or ``"macos"``.

        Returns:
            Platform: Matching platform, ``Platform.ANY`` when ``raw`` is empty.

        Raises:
            ValueError: If ``raw`` does not name a known platform.
        """

        if raw is None or not raw.strip():
            return cls.ANY
        token = raw.strip().lower()
        resolved = _PLATFORM_ALIASES.get(token)
        if resolved is None:
            raise ValueError(f"unknown platform '{raw}'")
        return resolved

    def accepts(self, other: Platform) -> bool:
        """Return ``True`` when a binary for ``other`` can be used on this platform."""

        return other is Platform.ANY or self is Platform.ANY or self is other


_PLATFORM_ALIASES: Final[dict[str, Platform]] = {
    "windows": Platform.WINDOWS,
    "win": Platform.WINDOWS,
    "win32": Platform.WINDOWS,
    "win64": Platform.WINDOWS,
    "linux": Platform.LINUX,
    "darwin": Platform.DARWIN,
    "macos": Platform.DARWIN,
    "mac": Platform.DARWIN,
    "osx": Platform.DARWIN,
    "any": Platform.ANY,
    "all": Platform.ANY,
    "generic": Platform.ANY,
}

_WINDOWS_MARKERS: Final[frozenset[str]] = frozenset(
    {"windows", "win", "win32", "win64", "exe", "msi", "dll", "sys", "ps1"}
)
_LINUX_MARKERS: Final[frozenset[str]] = frozenset({"linux", "deb", "rpm", "appimage", "musl", "gnu"})
_DARWIN_MARKERS: Final[frozenset[str]] = frozenset({"darwin", "macos", "mac", "osx", "dmg", "pkg", "apple"})
_TOKEN_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[^a-z0-9]+")


def url_filename(url: str) -> str:
    """Return the decoded final path segment of ``url`` (may be empty)."""

    path = unquote(urlparse(url).path)
    return path.rstrip("/").rsplit("/", 1)[-1]


def infer_platform(url: str | None) -> Platform:
    """Infer the target platform from the filename a download URL points at.

    Args:
        url: Download URL, ``None`` for name-only references.

    Returns:
        Platform: Detected platform, ``Platform.ANY`` when no marker (or more
        than one conflicting marker) appears.
    """

    if not url:
        return Platform.ANY
    tokens = {token for token in _TOKEN_SPLIT_RE.split(url_filename(url).lower()) if token}
    matches: set[Platform] = set()
    if tokens & _WINDOWS_MARKERS:
        matches.add(Platform.WINDOWS)
    if tokens & _LINUX_MARKERS:
        matches.add(Platform.LINUX)
    if tokens & _DARWIN_MARKERS:
        matches.add(Platform.DARWIN)
    if len(matches) == 1:
        return matches.pop()
    return Platform.ANY


__all__ = ["Platform", "infer_platform", "url_filename"]
