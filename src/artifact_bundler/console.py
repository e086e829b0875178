# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared Rich consoles for summaries, status lines, and log records.

Summaries and status lines go to stdout; log records go to stderr so that
``--verbose`` extraction traces never interleave with the run summary.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, TextIO

from rich.console import Console

Stream = Literal["stdout", "stderr"]


def stream_is_tty(stream: Stream = "stdout") -> bool:
    """Return whether ``stream`` is attached to a terminal."""

    handle: TextIO | None = sys.stdout if stream == "stdout" else sys.stderr
    try:
        return bool(handle is not None and handle.isatty())
    except (AttributeError, ValueError):
        return False


@dataclass(frozen=True, slots=True)
class ConsoleKey:
    """Preferences that distinguish one cached console from another."""

    color: bool
    emoji: bool
    stream: Stream
    tty: bool


class ConsoleManager:
    """Hand out one Rich :class:`Console` per distinct :class:`ConsoleKey`."""

    def __init__(self) -> None:
        self._consoles: dict[ConsoleKey, Console] = {}

    def get(self, *, color: bool, emoji: bool, stream: Stream = "stdout") -> Console:
        """Return the console for the given colour, emoji, and stream choice.

        Colour is only honoured when the stream is a terminal; redirected
        output (files, CI logs, test runners) is always plain.
        """

        key = ConsoleKey(color=color, emoji=emoji, stream=stream, tty=stream_is_tty(stream))
        console = self._consoles.get(key)
        if console is None:
            coloured = key.color and key.tty
            console = Console(
                stderr=stream == "stderr",
                color_system="auto" if coloured else None,
                force_terminal=key.tty,
                no_color=not coloured,
                emoji=emoji,
                soft_wrap=True,
                highlight=False,
            )
            self._consoles[key] = console
        return console

    def reset(self) -> None:
        """Forget every cached console."""

        self._consoles.clear()


@lru_cache(maxsize=1)
def get_console_manager() -> ConsoleManager:
    """Return the process-wide :class:`ConsoleManager`."""

    return ConsoleManager()


__all__ = ["ConsoleKey", "ConsoleManager", "Stream", "get_console_manager", "stream_is_tty"]
