# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import pytest
import requests
import yaml

from artifact_bundler.config.models import Config


def sha256_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


@dataclass
class CorpusBuilder:
    """Write artifact definition files into a temporary corpus."""

    root: Path

    def write(self, relative: str, text: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def artifact(
        self,
        name: str,
        *,
        tools: Sequence[dict[str, Any]] = (),
        query: str = "SELECT * FROM info()",
        tags: Sequence[str] = (),
        parameters: Sequence[dict[str, Any]] = (),
        filename: str | None = None,
    ) -> Path:
        document: dict[str, Any] = {
            "name": name,
            "description": f"{name} test artifact",
            "author": "tests",
            "type": "CLIENT",
            "sources": [{"name": "main", "query": query}],
        }
        if tools:
            document["tools"] = list(tools)
        if tags:
            document["tags"] = list(tags)
        if parameters:
            document["parameters"] = list(parameters)
        target = filename or f"{name.replace('.', '/')}.yaml"
        return self.write(target, yaml.safe_dump(document, sort_keys=False))


@pytest.fixture
def corpus(tmp_path: Path) -> CorpusBuilder:
    root = tmp_path / "corpus"
    root.mkdir()
    return CorpusBuilder(root)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Return a configuration isolated from the network and the user cache."""

    cfg = Config()
    cfg.scan.workers = 2
    cfg.acquisition.cache_dir = tmp_path / "cache"
    cfg.acquisition.backoff_base = 0.0
    cfg.acquisition.concurrency = 2
    cfg.registry.use_builtin = False
    cfg.output.color = False
    cfg.output.emoji = False
    return cfg


@dataclass
class FakeResponse:
    status_code: int
    body: bytes = b""
    closed: bool = False
    stream_error: Exception | None = None

    def iter_content(self, chunk_size: int) -> Iterator[bytes]:
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]
        if self.stream_error is not None:
            raise self.stream_error

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeSession:
    """Stand-in for ``requests.Session`` serving scripted responses per URL."""

    routes: dict[str, list[FakeResponse | Exception]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def route(self, url: str, *outcomes: FakeResponse | Exception) -> None:
        self.routes[url] = list(outcomes)

    def serve(self, url: str, body: bytes) -> None:
        self.route(url, FakeResponse(200, body))

    def get(self, url: str, *, stream: bool, timeout: tuple[float, float]) -> FakeResponse:
        self.calls.append(url)
        outcomes = self.routes.get(url)
        if not outcomes:
            return FakeResponse(404)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return replace(outcome, closed=False)

    def attempts(self, url: str) -> int:
        return self.calls.count(url)


@pytest.fixture
def http() -> FakeSession:
    return FakeSession()

