# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Package logger setup and the operator-facing status line helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Final

from rich.logging import RichHandler
from rich.rule import Rule
from rich.text import Text

from .console import get_console_manager, stream_is_tty

LOGGER_NAME: Final[str] = "artifact_bundler"


class StatusKind(Enum):
    """Status line categories with their glyph and colour."""

    INFO = ("ℹ️ ", "cyan")
    OK = ("✅ ", "green")
    WARN = ("⚠️ ", "yellow")
    FAIL = ("❌ ", "red")

    @property
    def glyph(self) -> str:
        return self.value[0]

    @property
    def style(self) -> str:
        return self.value[1]


class _BundlerRichHandler(RichHandler):
    """Marker subclass so reconfiguration replaces only our own handler."""


def configure_logging(*, verbose: bool = False, use_color: bool = True) -> logging.Logger:
    """Route ``artifact_bundler`` log records to a Rich handler on stderr.

    Args:
        verbose: Emit DEBUG records (extraction traces, retry decisions) when ``True``.
        use_color: Whether the handler may colour its output.

    Returns:
        logging.Logger: The configured package logger.
    """

    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    for existing in [item for item in logger.handlers if isinstance(item, _BundlerRichHandler)]:
        logger.removeHandler(existing)
    console = get_console_manager().get(color=use_color, emoji=False, stream="stderr")
    handler = _BundlerRichHandler(
        console=console,
        level=level,
        show_path=verbose,
        show_time=verbose,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s" if verbose else "%(message)s"))
    logger.addHandler(handler)
    return logger


def emoji(symbol: str, enable: bool) -> str:
    """Return ``symbol`` when emoji output is enabled, otherwise blank."""

    return symbol if enable else ""


def status(kind: StatusKind, msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Print one status line on stdout.

    Args:
        kind: Category controlling glyph and colour.
        msg: Message text.
        use_emoji: Prefix the category glyph when ``True``.
        use_color: Explicit colour choice; ``None`` colours only on a terminal.
    """

    color = stream_is_tty() if use_color is None else use_color
    console = get_console_manager().get(color=color, emoji=use_emoji)
    text = Text(emoji(kind.glyph, use_emoji) + msg)
    if color:
        text.stylize(kind.style)
    console.print(text)


def section(title: str, *, use_color: bool) -> None:
    """Print a header separating one block of command output from the next."""

    console = get_console_manager().get(color=use_color, emoji=False)
    console.print()
    console.print(Rule(title) if use_color else f"--- {title} ---")


def info(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    status(StatusKind.INFO, msg, use_emoji=use_emoji, use_color=use_color)


def ok(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    status(StatusKind.OK, msg, use_emoji=use_emoji, use_color=use_color)


def warn(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    status(StatusKind.WARN, msg, use_emoji=use_emoji, use_color=use_color)


def fail(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    status(StatusKind.FAIL, msg, use_emoji=use_emoji, use_color=use_color)


__all__ = ["LOGGER_NAME", "StatusKind", "configure_logging", "emoji", "fail", "info", "ok", "section", "status", "warn"]
