# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Resolve ``--select`` expressions into artifact names."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Final

from ..models import ArtifactDefinition

TAG_PREFIX: Final[str] = "tag:"
SCENARIO_PREFIX: Final[str] = "scenario:"
_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class Selection:
    """Artifacts matched by a selection expression plus tokens that matched nothing."""

    names: tuple[str, ...]
    unmatched: tuple[str, ...]


def split_tokens(expression: str | Sequence[str]) -> list[str]:
    """Split comma-separated selection input into trimmed tokens."""

    raw = [expression] if isinstance(expression, str) else list(expression)
    tokens: list[str] = []
    for chunk in raw:
        tokens.extend(part.strip() for part in chunk.split(",") if part.strip())
    return tokens


def select_artifacts(
    expression: str | Sequence[str],
    artifacts: Iterable[ArtifactDefinition],
    *,
    scenarios: Mapping[str, Sequence[str]] | None = None,
) -> Selection:
    """Return the artifacts named by ``expression``.

    Each token is an exact artifact name (case-insensitive), an ``fnmatch``
    glob on names, ``tag:<tag>``, or ``scenario:<name>`` which expands to the
    tokens configured for that scenario.

    Args:
        expression: Comma-separated tokens or a sequence of them.
        artifacts: Candidate artifact definitions.
        scenarios: Scenario name to token list mapping from configuration.

    Returns:
        Selection: Sorted matching names and the tokens that matched nothing.
    """

    candidates = list(artifacts)
    scenario_map = {key.lower(): list(value) for key, value in (scenarios or {}).items()}
    selected: set[str] = set()
    unmatched: list[str] = []
    pending = split_tokens(expression)
    expanded: set[str] = set()
    while pending:
        token = pending.pop(0)
        lowered = token.lower()
        if lowered.startswith(SCENARIO_PREFIX):
            scenario = lowered[len(SCENARIO_PREFIX) :].strip()
            if scenario in expanded:
                continue
            expanded.add(scenario)
            patterns = scenario_map.get(scenario)
            if patterns is None:
                unmatched.append(token)
            else:
                pending.extend(split_tokens(patterns))
            continue
        matches = _match_token(lowered, candidates)
        if matches:
            selected.update(matches)
        else:
            unmatched.append(token)
    return Selection(names=tuple(sorted(selected)), unmatched=tuple(unmatched))


def _match_token(token: str, candidates: Sequence[ArtifactDefinition]) -> set[str]:
    if token.startswith(TAG_PREFIX):
        tag = token[len(TAG_PREFIX) :].strip()
        return {artifact.name for artifact in candidates if tag in {value.lower() for value in artifact.tags}}
    if _GLOB_CHARS & set(token):
        return {artifact.name for artifact in candidates if fnmatchcase(artifact.name.lower(), token)}
    return {artifact.name for artifact in candidates if artifact.name.lower() == token}


__all__ = ["SCENARIO_PREFIX", "Selection", "TAG_PREFIX", "select_artifacts", "split_tokens"]
