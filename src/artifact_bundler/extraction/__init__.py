# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tool reference extraction from embedded query source."""

from __future__ import annotations

from .extractor import ExtractionResult, ReferenceExtractor
from .plugins import KNOWN_PLUGINS, PluginSignature
from .tokenizer import Token, TokenizeError, TokenKind, tokenize

__all__ = [
    "ExtractionResult",
    "KNOWN_PLUGINS",
    "PluginSignature",
    "ReferenceExtractor",
    "Token",
    "TokenKind",
    "TokenizeError",
    "tokenize",
]
