# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Whitelist of plugin call shapes that carry tool names or download URLs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class PluginSignature:
    """Describe a plugin whose keyword arguments name a tool or a download URL.

    Attributes:
        name: Qualified plugin name, matched case-insensitively.
        tool_argument: Keyword whose value is a tool name.
        url_argument: Keyword whose value is a download URL.
        report_ambiguous: Record non-literal arguments as ambiguous references.
            Generic HTTP plugins mostly call APIs, so their computed URLs are
            only traced.
    """

    name: str
    tool_argument: str | None = None
    url_argument: str | None = None
    report_ambiguous: bool = True

    @property
    def short_name(self) -> str:
        """Return the final dotted component, used as the origin label."""

        return self.name.rsplit(".", 1)[-1]


KNOWN_PLUGINS: Final[tuple[PluginSignature, ...]] = (
    PluginSignature("Artifact.Generic.Utils.FetchBinary", tool_argument="ToolName"),
    PluginSignature("Artifact.Windows.Utils.FetchBinary", tool_argument="ToolName"),
    PluginSignature("http_client", url_argument="url", report_ambiguous=False),
)

IGNORED_PLUGINS: Final[frozenset[str]] = frozenset({"upload", "upload_directory", "upload_file"})

ARTIFACT_CALL_PREFIX: Final[str] = "artifact."

BINARY_EXTENSIONS: Final[tuple[str, ...]] = (
    ".tar.gz",
    ".tar.xz",
    ".tgz",
    ".zip",
    ".7z",
    ".exe",
    ".msi",
    ".dmg",
    ".pkg",
    ".deb",
    ".rpm",
    ".bin",
    ".dll",
    ".sys",
    ".ps1",
    ".appimage",
)

DOCUMENTATION_HOSTS: Final[frozenset[str]] = frozenset(
    {
        "docs.velociraptor.app",
        "learn.microsoft.com",
        "docs.microsoft.com",
        "attack.mitre.org",
        "en.wikipedia.org",
        "www.sans.org",
    }
)


def lookup_plugin(name: str, plugins: tuple[PluginSignature, ...] = KNOWN_PLUGINS) -> PluginSignature | None:
    """Return the signature for plugin ``name`` (case-insensitive), if whitelisted."""

    lowered = name.lower()
    for signature in plugins:
        if signature.name.lower() == lowered:
            return signature
    return None


def binary_extension(filename: str) -> str | None:
    """Return the binary-like extension ``filename`` ends with, if any."""

    lowered = filename.lower()
    for extension in BINARY_EXTENSIONS:
        if lowered.endswith(extension) and len(lowered) > len(extension):
            return extension
    return None


__all__ = [
    "ARTIFACT_CALL_PREFIX",
    "BINARY_EXTENSIONS",
    "DOCUMENTATION_HOSTS",
    "IGNORED_PLUGINS",
    "KNOWN_PLUGINS",
    "PluginSignature",
    "binary_extension",
    "lookup_plugin",
]
