# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cooperative cancellation shared by every pipeline stage."""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType


class CancellationToken:
    """Thread-safe flag that stops new work from being scheduled."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation; the first reason given is kept."""

        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return ``True`` once cancellation has been requested."""

        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Return the reason passed to :meth:`cancel`, if any."""

        return self._reason

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            bool: ``True`` when cancellation was requested during the wait.
        """

        return self._event.wait(timeout)


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[CancellationToken]:
    """Route SIGINT to ``token`` for the duration of the block.

    A second interrupt falls through to the previous handler so the operator
    can still force an exit.
    """

    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum: int, frame: FrameType | None) -> None:
        if token.cancelled:
            signal.signal(signal.SIGINT, previous)
            raise KeyboardInterrupt
        token.cancel("interrupted by operator")

    signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


__all__ = ["CancellationToken", "cancel_on_interrupt"]
