# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Config loading with layered precedence: defaults, user, pyproject, project, explicit."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from pydantic import ValidationError

from ..errors import ConfigError
from .models import Config

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME: Final[str] = ".artifact-bundler.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "artifact-bundler"


class TomlConfigSource:
    """Load a configuration fragment from a standalone TOML document."""

    def __init__(self, path: Path, *, required: bool = False) -> None:
        self.path = path
        self.name = str(path)
        self._required = required

    def load(self) -> Mapping[str, Any]:
        """Return the parsed document, or an empty mapping when the file is absent.

        Raises:
            ConfigError: If the file is required but missing, or is not valid TOML.
        """

        if not self.path.is_file():
            if self._required:
                raise ConfigError(f"configuration file not found: {self.path}")
            return {}
        try:
            with self.path.open("rb") as handle:
                return tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{self.path}: {exc}") from exc


class PyProjectConfigSource(TomlConfigSource):
    """Read configuration from ``[tool.artifact-bundler]`` within ``pyproject.toml``."""

    def load(self) -> Mapping[str, Any]:
        data = super().load()
        tool_section = data.get(PYPROJECT_TOOL_KEY)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        if not isinstance(section, Mapping):
            return {}
        return section


@dataclass(slots=True)
class ConfigLoadResult:
    """Resolved configuration plus the sources that contributed to it."""

    config: Config
    sources: list[str] = field(default_factory=list)


class ConfigLoader:
    """Apply layered configuration sources with predictable precedence."""

    def __init__(self, sources: Sequence[TomlConfigSource]) -> None:
        self._sources = list(sources)

    @classmethod
    def for_root(
        cls,
        corpus_root: Path,
        *,
        explicit: Path | None = None,
        user_config: Path | None = None,
    ) -> ConfigLoader:
        """Build a loader for ``corpus_root`` respecting user, project, and explicit files.

        Args:
            corpus_root: Directory holding the artifact corpus.
            explicit: Optional ``--config`` path that overrides every other source.
            user_config: Optional user-level override (defaults to ``~/.artifact-bundler.toml``).

        Returns:
            ConfigLoader: Loader configured with default precedence ordering.
        """

        home_config = user_config if user_config is not None else Path.home() / CONFIG_FILENAME
        sources: list[TomlConfigSource] = [
            TomlConfigSource(home_config),
            PyProjectConfigSource(corpus_root / "pyproject.toml"),
            TomlConfigSource(corpus_root / CONFIG_FILENAME),
        ]
        if explicit is not None:
            sources.append(TomlConfigSource(explicit, required=True))
        return cls(sources)

    def load(self) -> ConfigLoadResult:
        """Merge every source over the built-in defaults and validate the result.

        Returns:
            ConfigLoadResult: Validated configuration and contributing source names.

        Raises:
            ConfigError: If a source is unreadable or the merged data is invalid.
        """

        merged: dict[str, Any] = {}
        contributing: list[str] = []
        for source in self._sources:
            fragment = source.load()
            if not fragment:
                continue
            LOGGER.debug("applying configuration from %s", source.name)
            merged = _deep_merge(merged, fragment)
            contributing.append(source.name)
        try:
            config = Config.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"invalid configuration: {exc}") from exc
        return ConfigLoadResult(config=config, sources=contributing)


def load_config(corpus_root: Path, *, explicit: Path | None = None) -> Config:
    """Load configuration for ``corpus_root`` using the default tiered sources."""

    return ConfigLoader.for_root(corpus_root, explicit=explicit).load().config


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


__all__ = [
    "CONFIG_FILENAME",
    "ConfigLoadResult",
    "ConfigLoader",
    "PyProjectConfigSource",
    "TomlConfigSource",
    "load_config",
]
