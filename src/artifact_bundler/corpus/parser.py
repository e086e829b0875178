# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tolerant parser for artifact definition files.

Only ``name`` is required. Every other envelope field is optional and a
malformed field degrades the record instead of discarding it, because the
query blocks are where tool dependencies live. When the YAML document does
not load at all, a line-oriented salvage pass recovers ``name`` and every
``query`` block scalar it can find.
"""

from __future__ import annotations

import logging
import re
import textwrap
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import yaml

from ..models import (
    UNKNOWN,
    ArtifactDefinition,
    ArtifactParameter,
    ArtifactType,
    DeclaredTool,
    QueryBlock,
)
from ..platforms import Platform

LOGGER = logging.getLogger(__name__)

_NAME_LINE_RE: Final[re.Pattern[str]] = re.compile(r"^name:\s*['\"]?(?P<value>[^'\"#]+?)['\"]?\s*(?:#.*)?$")
_QUERY_KEY_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<indent>\s*)(?P<dash>-\s+)?query:\s*(?P<rest>.*)$"
)
_BLOCK_INDICATOR_RE: Final[re.Pattern[str]] = re.compile(r"^[|>][-+0-9]*\s*(?:#.*)?$")


@dataclass(slots=True)
class _FieldReader:
    """Collect degradation messages while reading envelope fields."""

    mapping: Mapping[str, Any]
    messages: list[str] = field(default_factory=list)

    def text(self, key: str) -> str:
        value = self.mapping.get(key)
        if value is None:
            return UNKNOWN
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value).strip() or UNKNOWN
        self.messages.append(f"field '{key}' is not a string")
        return UNKNOWN

    def sequence(self, key: str) -> Sequence[Any]:
        value = self.mapping.get(key)
        if value is None:
            return ()
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            return value
        self.messages.append(f"field '{key}' is not a list")
        return ()


class ArtifactParser:
    """Parse artifact definition files into :class:`ArtifactDefinition` records."""

    def parse_file(self, path: Path) -> ArtifactDefinition:
        """Parse ``path``, never raising for content problems.

        Args:
            path: Definition file to parse.

        Returns:
            ArtifactDefinition: Parsed record, flagged ``parse_error`` when degraded.
        """

        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            LOGGER.warning("unable to read %s: %s", path, exc)
            return ArtifactDefinition(
                name=path.stem,
                source_path=path,
                parse_error=True,
                parse_messages=(f"unreadable: {exc}",),
            )
        return self.parse_text(text, source_path=path)

    def parse_text(self, text: str, *, source_path: Path) -> ArtifactDefinition:
        """Parse definition ``text`` read from ``source_path``."""

        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            reason = " ".join(str(exc).split())
            LOGGER.debug("YAML load failed for %s: %s", source_path, reason)
            return self._salvage(text, source_path=source_path, reason=f"invalid YAML: {reason}")
        if not isinstance(document, Mapping):
            return self._salvage(text, source_path=source_path, reason="document is not a mapping")
        return self._from_mapping(document, source_path=source_path)

    def iter_definitions(self, paths: Iterable[Path]) -> Iterator[ArtifactDefinition]:
        """Yield one definition per path, lazily."""

        for path in paths:
            yield self.parse_file(path)

    def _from_mapping(self, document: Mapping[str, Any], *, source_path: Path) -> ArtifactDefinition:
        reader = _FieldReader(document)
        name = reader.text("name")
        if name == UNKNOWN:
            reader.messages.append("missing 'name'; using file name")
            name = source_path.stem

        raw_type = document.get("type")
        artifact_type = ArtifactType.parse(raw_type)
        if raw_type is not None and artifact_type is ArtifactType.UNKNOWN:
            reader.messages.append(f"unrecognised artifact type '{raw_type}'")

        return ArtifactDefinition(
            name=name,
            description=reader.text("description"),
            author=reader.text("author"),
            artifact_type=artifact_type,
            parameters=_parse_parameters(reader),
            queries=_parse_queries(reader, artifact_name=name),
            tools=_parse_tools(reader),
            tags=_parse_tags(reader),
            source_path=source_path,
            parse_error=bool(reader.messages),
            parse_messages=tuple(reader.messages),
        )

    def _salvage(self, text: str, *, source_path: Path, reason: str) -> ArtifactDefinition:
        lines = text.splitlines()
        name = source_path.stem
        for line in lines:
            match = _NAME_LINE_RE.match(line)
            if match:
                name = match.group("value").strip()
                break
        blocks = tuple(
            QueryBlock(name=f"{name}/salvaged-{index}", query=query)
            for index, query in enumerate(_salvage_queries(lines))
        )
        messages = [reason]
        if blocks:
            messages.append(f"salvaged {len(blocks)} query block(s)")
        LOGGER.info("degraded parse of %s (%s)", source_path, "; ".join(messages))
        return ArtifactDefinition(
            name=name,
            queries=blocks,
            source_path=source_path,
            parse_error=True,
            parse_messages=tuple(messages),
        )


def _parse_parameters(reader: _FieldReader) -> tuple[ArtifactParameter, ...]:
    parameters: list[ArtifactParameter] = []
    for index, entry in enumerate(reader.sequence("parameters")):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str):
            reader.messages.append(f"parameters[{index}] has no name")
            continue
        default = entry.get("default")
        type_value = entry.get("type")
        parameters.append(
            ArtifactParameter(
                name=entry["name"].strip(),
                default=None if default is None else str(default),
                type=str(type_value) if isinstance(type_value, str) and type_value else "string",
            )
        )
    return tuple(parameters)


def _parse_queries(reader: _FieldReader, *, artifact_name: str) -> tuple[QueryBlock, ...]:
    blocks: list[QueryBlock] = []
    export = reader.mapping.get("export")
    if isinstance(export, str) and export.strip():
        blocks.append(QueryBlock(name=f"{artifact_name}/export", query=export))
    for index, entry in enumerate(reader.sequence("sources")):
        if not isinstance(entry, Mapping):
            reader.messages.append(f"sources[{index}] is not a mapping")
            continue
        block_name = entry.get("name")
        suffix = block_name if isinstance(block_name, str) and block_name else index
        label = f"{artifact_name}/{suffix}"
        query = entry.get("query")
        if isinstance(query, str):
            blocks.append(QueryBlock(name=label, query=query))
        elif query is not None:
            reader.messages.append(f"sources[{index}].query is not a string")
        legacy = entry.get("queries")
        if isinstance(legacy, Sequence) and not isinstance(legacy, (str, bytes)):
            text_parts = [part for part in legacy if isinstance(part, str)]
            if len(text_parts) != len(legacy):
                reader.messages.append(f"sources[{index}].queries contains non-string entries")
            if text_parts:
                blocks.append(QueryBlock(name=label, query="\n".join(text_parts)))
    return tuple(blocks)


def _parse_tools(reader: _FieldReader) -> tuple[DeclaredTool, ...]:
    tools: list[DeclaredTool] = []
    for index, entry in enumerate(reader.sequence("tools")):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str) or not entry["name"].strip():
            reader.messages.append(f"tools[{index}] has no name")
            continue
        url = entry.get("url")
        expected_hash = entry.get("expected_hash")
        platform: Platform | None = None
        raw_platform = entry.get("platform")
        if isinstance(raw_platform, str):
            try:
                platform = Platform.parse(raw_platform)
            except ValueError:
                reader.messages.append(f"tools[{index}] has unknown platform '{raw_platform}'")
        tools.append(
            DeclaredTool(
                name=entry["name"].strip(),
                url=url if isinstance(url, str) and url.strip() else None,
                expected_hash=expected_hash if isinstance(expected_hash, str) and expected_hash.strip() else None,
                platform=platform,
            )
        )
    return tuple(tools)


def _parse_tags(reader: _FieldReader) -> tuple[str, ...]:
    value = reader.mapping.get("tags")
    if isinstance(value, str):
        return tuple(tag.strip() for tag in value.split(",") if tag.strip())
    return tuple(str(tag).strip() for tag in reader.sequence("tags") if str(tag).strip())


def _salvage_queries(lines: Sequence[str]) -> list[str]:
    """Recover ``query:`` values from YAML text that failed to load."""

    queries: list[str] = []
    index = 0
    while index < len(lines):
        match = _QUERY_KEY_RE.match(lines[index])
        index += 1
        if match is None:
            continue
        rest = match.group("rest").strip()
        if rest and not _BLOCK_INDICATOR_RE.match(rest):
            queries.append(rest.strip("'\""))
            continue
        key_indent = len(match.group("indent")) + len(match.group("dash") or "")
        body: list[str] = []
        while index < len(lines):
            line = lines[index]
            if line.strip() and len(line) - len(line.lstrip()) <= key_indent:
                break
            body.append(line)
            index += 1
        text = textwrap.dedent("\n".join(body)).strip("\n")
        if text.strip():
            queries.append(text)
    return queries


__all__ = ["ArtifactParser"]
