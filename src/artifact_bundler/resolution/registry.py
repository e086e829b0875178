# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Known-tool registry used to resolve name-only references."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from ..config.models import RegistryConfig
from ..errors import RegistryError
from ..models import normalize_hash, normalize_tool_name
from ..platforms import Platform, infer_platform
from ..schemas import REGISTRY_DOCUMENT, REGISTRY_SCHEMA, first_error, load_bundled_document, validator_for

LOGGER = logging.getLogger(__name__)


class RegistryEntry(BaseModel):
    """Canonical download source for a well-known tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    expected_hash: str | None = None
    platform: Platform = Platform.ANY
    homepage: str | None = None


@runtime_checkable
class ToolRegistry(Protocol):
    """Lookup table mapping tool names to canonical download sources."""

    def lookup(self, name: str) -> RegistryEntry | None:
        """Return the entry for ``name`` (exact, case-insensitive) if known."""


class StaticToolRegistry:
    """In-memory registry keyed by normalised tool name."""

    def __init__(self, entries: Iterable[RegistryEntry] = ()) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        for entry in entries:
            self._entries[normalize_tool_name(entry.name)] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, name: str) -> RegistryEntry | None:
        return self._entries.get(normalize_tool_name(name))

    def names(self) -> tuple[str, ...]:
        """Return the normalised names of every registered tool."""

        return tuple(sorted(self._entries))

    def merged_with(self, other: StaticToolRegistry) -> StaticToolRegistry:
        """Return a registry where entries from ``other`` override this one."""

        return StaticToolRegistry([*self._entries.values(), *other._entries.values()])

    @classmethod
    def from_document(cls, document: Any, *, source: str = "<memory>") -> StaticToolRegistry:
        """Build a registry from a parsed JSON document.

        Args:
            document: Decoded registry document.
            source: Label used in error messages.

        Returns:
            StaticToolRegistry: Registry holding every validated entry.

        Raises:
            RegistryError: If the document does not satisfy the registry schema.
        """

        problem = first_error(validator_for(REGISTRY_SCHEMA), document)
        if problem is not None:
            raise RegistryError(f"{source}: {problem}")
        entries = [_entry_from_mapping(raw) for raw in document["tools"]]
        LOGGER.debug("loaded %d registry entries from %s", len(entries), source)
        return cls(entries)

    @classmethod
    def from_path(cls, path: Path) -> StaticToolRegistry:
        """Load and validate a registry document from ``path``."""

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise RegistryError(f"unable to read registry {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise RegistryError(f"{path}: invalid JSON: {exc}") from exc
        return cls.from_document(document, source=str(path))

    @classmethod
    def builtin(cls) -> StaticToolRegistry:
        """Return the registry of well-known DFIR tools bundled with the package."""

        return cls.from_document(load_bundled_document(REGISTRY_DOCUMENT), source="<builtin>")


def _entry_from_mapping(raw: Mapping[str, Any]) -> RegistryEntry:
    url = str(raw["url"])
    platform_value = raw.get("platform")
    platform = Platform.parse(platform_value) if platform_value else infer_platform(url)
    return RegistryEntry(
        name=str(raw["name"]),
        url=url,
        expected_hash=normalize_hash(raw.get("expected_hash")),
        platform=platform,
        homepage=raw.get("homepage"),
    )


def build_registry(config: RegistryConfig) -> StaticToolRegistry:
    """Return the registry described by ``config``.

    Args:
        config: Registry section of the loaded configuration.

    Returns:
        StaticToolRegistry: Built-in entries (when enabled) overlaid with the
        optional registry file.
    """

    registry = StaticToolRegistry.builtin() if config.use_builtin else StaticToolRegistry()
    if config.path is not None:
        registry = registry.merged_with(StaticToolRegistry.from_path(config.path))
    return registry


__all__ = ["RegistryEntry", "StaticToolRegistry", "ToolRegistry", "build_registry"]
