# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Minimal tokenizer for embedded VQL query source.

The tokenizer only distinguishes what the reference extractor needs to
recognise plugin calls: string literals, dotted identifiers, numbers and
punctuation. Comments and whitespace are dropped.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Final


class TokenKind(str, Enum):
    """Enumerate token categories produced by :func:`tokenize`."""

    STRING = "string"
    IDENT = "ident"
    NUMBER = "number"
    PUNCT = "punct"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token with its 1-based source line."""

    kind: TokenKind
    value: str
    line: int

    @property
    def text(self) -> str:
        """Return the token as it would be written in source."""

        if self.kind is TokenKind.STRING:
            return repr(self.value)
        return self.value


_MULTI_CHAR_PUNCT: Final[tuple[str, ...]] = ("=~", "==", "!=", "<=", ">=", "=>")
_IDENT_START: Final[frozenset[str]] = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_IDENT_BODY: Final[frozenset[str]] = _IDENT_START | frozenset("0123456789")
_ESCAPES: Final[dict[str, str]] = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


class TokenizeError(ValueError):
    """Raised when the source contains an unterminated string or comment."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


def tokenize(source: str, *, errors: list[TokenizeError] | None = None) -> Iterator[Token]:
    """Yield tokens from ``source``.

    Args:
        source: Raw VQL text.
        errors: When given, unterminated constructs are closed (strings at
            the end of their line, comments and raw strings at the end of the
            source) and the problem is appended here instead of raised.

    Yields:
        Token: Tokens in source order.

    Raises:
        TokenizeError: If a string literal or block comment is not terminated
            and ``errors`` is ``None``.
    """

    index = 0
    line = 1
    length = len(source)
    while index < length:
        char = source[index]
        if char == "\n":
            line += 1
            index += 1
            continue
        if char.isspace():
            index += 1
            continue
        if source.startswith(("--", "//"), index):
            end = source.find("\n", index)
            index = length if end == -1 else end
            continue
        if source.startswith("/*", index):
            end = source.find("*/", index + 2)
            if end == -1:
                _report(TokenizeError("unterminated block comment", line), errors)
                break
            line += source.count("\n", index, end)
            index = end + 2
            continue
        if source.startswith("'''", index):
            end = source.find("'''", index + 3)
            if end == -1:
                _report(TokenizeError("unterminated raw string", line), errors)
                yield Token(TokenKind.STRING, source[index + 3 :], line)
                break
            value = source[index + 3 : end]
            yield Token(TokenKind.STRING, value, line)
            line += value.count("\n")
            index = end + 3
            continue
        if char in "'\"":
            quoted = _read_quoted(source, index)
            if quoted is None:
                _report(TokenizeError("unterminated string literal", line), errors)
                end = source.find("\n", index)
                end = length if end == -1 else end
                yield Token(TokenKind.STRING, source[index + 1 : end], line)
                index = end
                continue
            value, index, consumed_lines = quoted
            yield Token(TokenKind.STRING, value, line)
            line += consumed_lines
            continue
        if char in _IDENT_START or char == "`":
            value, index = _read_identifier(source, index)
            yield Token(TokenKind.IDENT, value, line)
            continue
        if char.isdigit():
            start = index
            while index < length and (source[index].isalnum() or source[index] == "."):
                index += 1
            yield Token(TokenKind.NUMBER, source[start:index], line)
            continue
        for operator in _MULTI_CHAR_PUNCT:
            if source.startswith(operator, index):
                yield Token(TokenKind.PUNCT, operator, line)
                index += len(operator)
                break
        else:
            yield Token(TokenKind.PUNCT, char, line)
            index += 1


def _report(error: TokenizeError, errors: list[TokenizeError] | None) -> None:
    if errors is None:
        raise error
    errors.append(error)


def _read_quoted(source: str, start: int) -> tuple[str, int, int] | None:
    """Return ``(value, end index, newlines consumed)``, or ``None`` when unterminated."""

    quote = source[start]
    index = start + 1
    parts: list[str] = []
    while index < len(source):
        char = source[index]
        if char == "\\" and index + 1 < len(source):
            parts.append(_ESCAPES.get(source[index + 1], source[index + 1]))
            index += 2
            continue
        if char == quote:
            value = "".join(parts)
            return value, index + 1, source.count("\n", start, index)
        parts.append(char)
        index += 1
    return None


def _read_identifier(source: str, start: int) -> tuple[str, int]:
    if source[start] == "`":
        end = source.find("`", start + 1)
        if end == -1:
            return source[start + 1 :], len(source)
        return source[start + 1 : end], end + 1
    index = start
    while index < len(source):
        char = source[index]
        if char in _IDENT_BODY:
            index += 1
            continue
        if char == "." and index + 1 < len(source) and source[index + 1] in _IDENT_START:
            index += 1
            continue
        break
    return source[start:index], index


__all__ = ["Token", "TokenKind", "TokenizeError", "tokenize"]
