# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Corpus discovery, parsing, and identity."""

from __future__ import annotations

from .identity import CorpusIdentity, identify_corpus
from .parser import ArtifactParser
from .scanner import CorpusScanner

__all__ = ["ArtifactParser", "CorpusIdentity", "CorpusScanner", "identify_corpus"]
