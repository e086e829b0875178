# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Pattern-based extraction of tool references from artifact query source."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final
from urllib.parse import urlparse

from ..models import (
    UNTOKENIZABLE_PLUGIN,
    AmbiguousReference,
    ArtifactDefinition,
    DeclaredTool,
    ToolReference,
    normalize_tool_name,
)
from ..platforms import url_filename
from .plugins import (
    ARTIFACT_CALL_PREFIX,
    DOCUMENTATION_HOSTS,
    IGNORED_PLUGINS,
    KNOWN_PLUGINS,
    PluginSignature,
    binary_extension,
    lookup_plugin,
)
from .tokenizer import Token, TokenizeError, TokenKind, tokenize

LOGGER = logging.getLogger(__name__)

_URL_RE: Final[re.Pattern[str]] = re.compile(r"https?://[^\s'\"`<>()\[\]{},]+")
_OPENERS: Final[dict[str, str]] = {"(": ")", "[": "]", "{": "}"}


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Tool references and diagnostics extracted from one artifact."""

    artifact: str
    references: tuple[ToolReference, ...]
    ambiguous: tuple[AmbiguousReference, ...]
    artifact_calls: frozenset[str]
    trace: tuple[str, ...]


@dataclass(slots=True)
class _Argument:
    keyword: str | None
    tokens: list[Token]

    @property
    def expression(self) -> str:
        return " ".join(token.text for token in self.tokens)


@dataclass(slots=True)
class _Collector:
    """Accumulate references for one artifact, merging duplicates."""

    artifact: ArtifactDefinition
    references: dict[tuple[str, str | None, str | None], ToolReference] = field(default_factory=dict)
    ambiguous: list[AmbiguousReference] = field(default_factory=list)
    calls: set[str] = field(default_factory=set)
    consumed_urls: set[str] = field(default_factory=set)
    trace: list[str] = field(default_factory=list)

    def note(self, message: str) -> None:
        entry = f"{self.artifact.name}: {message}"
        self.trace.append(entry)
        LOGGER.debug(entry)

    def add(self, reference: ToolReference) -> None:
        key = (reference.tool_name, reference.url, reference.expected_hash)
        existing = self.references.get(key)
        if existing is not None:
            reference = existing.model_copy(
                update={
                    "origins": existing.origins | reference.origins,
                    "inferred": existing.inferred and reference.inferred,
                }
            )
        self.references[key] = reference
        if reference.url:
            self.consumed_urls.add(reference.url)

    def untokenizable(self, block: str, error: TokenizeError) -> None:
        self.ambiguous.append(
            AmbiguousReference(
                artifact=self.artifact.name,
                plugin=UNTOKENIZABLE_PLUGIN,
                argument=block,
                expression=str(error),
                line=error.line,
                reason="untokenizable",
            )
        )
        self.note(f"query block '{block}' recovered after tokenizer error ({error}); calls may be missing")


class ReferenceExtractor:
    """Recognise whitelisted plugin calls, envelope tool lists, and bare download URLs."""

    def __init__(self, plugins: Sequence[PluginSignature] = KNOWN_PLUGINS) -> None:
        self._plugins = tuple(plugins)

    def extract(self, artifact: ArtifactDefinition) -> ExtractionResult:
        """Return every tool reference found in ``artifact``.

        Args:
            artifact: Parsed (possibly degraded) artifact definition.

        Returns:
            ExtractionResult: References, ambiguous arguments, artifact calls and trace.
        """

        collector = _Collector(artifact)
        declared = {normalize_tool_name(tool.name): tool for tool in artifact.tools}
        for tool in artifact.tools:
            collector.add(_from_declaration(tool, artifact_name=artifact.name, origin="envelope"))
            collector.note(f"envelope declares tool '{tool.name}'")

        for block in artifact.queries:
            errors: list[TokenizeError] = []
            tokens = list(tokenize(block.query, errors=errors))
            for error in errors:
                collector.untokenizable(block.name, error)
            self._scan_calls(tokens, collector=collector, declared=declared)
            self._scan_urls(block.query, collector=collector)

        if not artifact.queries:
            collector.note("no query source to scan")
        references = tuple(sorted(collector.references.values(), key=_reference_sort_key))
        return ExtractionResult(
            artifact=artifact.name,
            references=references,
            ambiguous=tuple(collector.ambiguous),
            artifact_calls=frozenset(collector.calls),
            trace=tuple(collector.trace),
        )

    def _scan_calls(
        self,
        tokens: Sequence[Token],
        *,
        collector: _Collector,
        declared: dict[str, DeclaredTool],
    ) -> None:
        for index, token in enumerate(tokens[:-1]):
            if token.kind is not TokenKind.IDENT or tokens[index + 1].value != "(":
                continue
            signature = lookup_plugin(token.value, self._plugins)
            if signature is None:
                lowered = token.value.lower()
                if lowered in IGNORED_PLUGINS:
                    collector.note(f"line {token.line}: ignoring {token.value}() (not a tool reference)")
                elif lowered.startswith(ARTIFACT_CALL_PREFIX) and len(token.value) > len(ARTIFACT_CALL_PREFIX):
                    called = token.value[len(ARTIFACT_CALL_PREFIX) :]
                    collector.calls.add(called)
                    collector.note(f"line {token.line}: calls artifact '{called}'")
                continue
            arguments = _split_arguments(tokens, index + 1)
            self._match_signature(signature, token, arguments, collector=collector, declared=declared)

    def _match_signature(
        self,
        signature: PluginSignature,
        call: Token,
        arguments: Sequence[_Argument],
        *,
        collector: _Collector,
        declared: dict[str, DeclaredTool],
    ) -> None:
        origin = f"plugin:{signature.short_name}"
        by_keyword = {arg.keyword.lower(): arg for arg in arguments if arg.keyword}
        if signature.tool_argument is not None:
            argument = by_keyword.get(signature.tool_argument.lower())
            if argument is None:
                self._ambiguous(signature, signature.tool_argument, "<missing>", call, collector)
                return
            value, via = _literal_value(argument, collector.artifact)
            if value is None:
                self._ambiguous(signature, signature.tool_argument, argument.expression, call, collector)
                return
            declaration = declared.get(normalize_tool_name(value))
            origins = {origin} if via is None else {origin, via}
            if declaration is not None:
                reference = _from_declaration(declaration, artifact_name=collector.artifact.name, origin=origin)
                collector.add(reference.model_copy(update={"origins": reference.origins | origins}))
                collector.note(f"line {call.line}: {signature.short_name} names '{value}' (declared in envelope)")
            else:
                collector.add(
                    ToolReference.create(value, declared_by=collector.artifact.name, origin=origin).model_copy(
                        update={"origins": frozenset(origins)}
                    )
                )
                collector.note(f"line {call.line}: {signature.short_name} names '{value}' (name only)")
        if signature.url_argument is not None:
            argument = by_keyword.get(signature.url_argument.lower())
            if argument is None:
                return
            value, _ = _literal_value(argument, collector.artifact)
            if value is None:
                if signature.report_ambiguous:
                    self._ambiguous(signature, signature.url_argument, argument.expression, call, collector)
                else:
                    collector.note(
                        f"line {call.line}: {signature.short_name} url is computed ({argument.expression}); skipped"
                    )
                return
            self._consider_url(value, collector=collector, origin=origin, line=call.line)

    def _scan_urls(self, source: str, *, collector: _Collector) -> None:
        for line_number, line in enumerate(source.splitlines(), start=1):
            for match in _URL_RE.finditer(line):
                url = match.group(0).rstrip(".;")
                if url in collector.consumed_urls:
                    continue
                self._consider_url(url, collector=collector, origin="url", line=line_number)

    def _consider_url(self, url: str, *, collector: _Collector, origin: str, line: int) -> None:
        parsed = urlparse(url)
        if parsed.scheme != "https":
            collector.note(f"line {line}: ignoring non-https URL {url}")
            return
        if (parsed.hostname or "").lower() in DOCUMENTATION_HOSTS:
            collector.note(f"line {line}: ignoring documentation URL {url}")
            return
        for tool in collector.artifact.tools:
            if tool.url == url:
                collector.consumed_urls.add(url)
                collector.note(f"line {line}: URL belongs to declared tool '{tool.name}'")
                return
        filename = url_filename(url)
        extension = binary_extension(filename)
        if extension is None:
            collector.note(f"line {line}: ignoring URL without binary extension {url}")
            return
        name = filename[: -len(extension)]
        collector.add(
            ToolReference.create(
                name,
                declared_by=collector.artifact.name,
                origin=origin,
                url=url,
                inferred=True,
            )
        )
        collector.note(f"line {line}: inferred tool '{name}' from URL {url}")

    def _ambiguous(
        self,
        signature: PluginSignature,
        argument: str,
        expression: str,
        call: Token,
        collector: _Collector,
    ) -> None:
        collector.ambiguous.append(
            AmbiguousReference(
                artifact=collector.artifact.name,
                plugin=signature.name,
                argument=argument,
                expression=expression,
                line=call.line,
            )
        )
        collector.note(f"line {call.line}: {signature.short_name}({argument}={expression}) is not a literal")


def _from_declaration(tool: DeclaredTool, *, artifact_name: str, origin: str) -> ToolReference:
    return ToolReference.create(
        tool.name,
        declared_by=artifact_name,
        origin=origin,
        url=tool.url,
        expected_hash=tool.expected_hash,
        platform=tool.platform,
    )


def _split_arguments(tokens: Sequence[Token], open_index: int) -> list[_Argument]:
    """Split the call starting at ``tokens[open_index] == '('`` into top-level arguments."""

    arguments: list[_Argument] = []
    current: list[Token] = []
    depth = 0
    for token in tokens[open_index + 1 :]:
        if token.kind is TokenKind.PUNCT and token.value in _OPENERS:
            depth += 1
        elif token.kind is TokenKind.PUNCT and token.value in _OPENERS.values():
            if depth == 0:
                break
            depth -= 1
        elif depth == 0 and token.kind is TokenKind.PUNCT and token.value == ",":
            arguments.append(_to_argument(current))
            current = []
            continue
        current.append(token)
    if current:
        arguments.append(_to_argument(current))
    return arguments


def _to_argument(tokens: list[Token]) -> _Argument:
    if len(tokens) >= 2 and tokens[0].kind is TokenKind.IDENT and tokens[1].value == "=":
        return _Argument(keyword=tokens[0].value, tokens=tokens[2:])
    return _Argument(keyword=None, tokens=tokens)


def _literal_value(argument: _Argument, artifact: ArtifactDefinition) -> tuple[str | None, str | None]:
    """Return ``(value, origin)`` when ``argument`` reduces to a literal string."""

    if len(argument.tokens) != 1:
        return None, None
    token = argument.tokens[0]
    if token.kind is TokenKind.STRING:
        return (token.value.strip() or None), None
    if token.kind is TokenKind.IDENT:
        default = artifact.parameter_default(token.value)
        if default is not None and default.strip():
            return default.strip(), "parameter-default"
    return None, None


def _reference_sort_key(reference: ToolReference) -> tuple[str, str, str]:
    return reference.tool_name, reference.url or "", reference.expected_hash or ""


__all__ = ["ExtractionResult", "ReferenceExtractor"]
