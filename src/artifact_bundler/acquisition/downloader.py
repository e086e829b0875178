# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""HTTP download with streaming hashing and bounded retries."""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

import requests

from ..cancellation import CancellationToken
from ..config.models import AcquisitionConfig
from ..errors import AcquisitionFailure, NetworkError

LOGGER = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES: Final[frozenset[int]] = frozenset({408, 429})
_CHUNK_SIZE: Final[int] = 64 * 1024
_TRANSIENT_EXCEPTIONS: Final[tuple[type[Exception], ...]] = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


class _Response(Protocol):
    """Subset of :class:`requests.Response` used while streaming."""

    status_code: int

    def iter_content(self, chunk_size: int) -> Iterator[bytes]: ...

    def close(self) -> None: ...


class HttpSession(Protocol):
    """Subset of :class:`requests.Session` the downloader depends on."""

    def get(self, url: str, *, stream: bool, timeout: tuple[float, float]) -> _Response: ...


@dataclass(frozen=True, slots=True)
class DownloadResult:
    """Outcome of a successful download."""

    sha256: str
    size_bytes: int
    attempts: int


def build_session(config: AcquisitionConfig) -> requests.Session:
    """Return a :class:`requests.Session` configured with the tool user agent."""

    session = requests.Session()
    session.headers.update({"User-Agent": config.user_agent})
    return session


def is_transient_status(status_code: int) -> bool:
    """Return ``True`` when an HTTP status is worth retrying."""

    return status_code >= 500 or status_code in TRANSIENT_STATUS_CODES


def backoff_delay(attempt: int, *, base: float, cap: float) -> float:
    """Return the delay before retry ``attempt`` (1-based), capped at ``cap``."""

    return min(cap, base * (2 ** (attempt - 1)))


class Downloader:
    """Stream URLs to disk while hashing, retrying transient failures."""

    def __init__(
        self,
        session: HttpSession,
        config: AcquisitionConfig,
        *,
        cancel: CancellationToken | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._cancel = cancel
        self._sleep = sleep

    @property
    def timeout(self) -> tuple[float, float]:
        """Return the per-request ``(connect, read)`` timeout."""

        return self._config.connect_timeout, self._config.read_timeout

    def fetch(self, tool_name: str, url: str, destination: Path) -> DownloadResult:
        """Download ``url`` into ``destination``.

        Args:
            tool_name: Tool being acquired, used in error messages.
            url: Source URL.
            destination: File that receives the body; overwritten per attempt.

        Returns:
            DownloadResult: Digest and size of the downloaded body.

        Raises:
            NetworkError: When the server returns a permanent error, or every
                attempt fails with a transient one.
            AcquisitionFailure: When cancellation is requested between attempts.
        """

        attempts = self._config.retries
        last_error: NetworkError | None = None
        for attempt in range(1, attempts + 1):
            if self._cancel is not None and self._cancel.cancelled:
                raise AcquisitionFailure(tool_name, "cancelled before download")
            try:
                return self._attempt(tool_name, url, destination, attempt)
            except NetworkError as exc:
                if exc.permanent:
                    raise
                last_error = exc
            if attempt < attempts:
                delay = backoff_delay(attempt, base=self._config.backoff_base, cap=self._config.backoff_cap)
                LOGGER.debug("retrying %s in %.2fs (attempt %d/%d): %s", url, delay, attempt + 1, attempts, last_error)
                self._pause(tool_name, delay)
        assert last_error is not None
        raise NetworkError(
            tool_name,
            f"{last_error.detail} (gave up after {attempts} attempts)",
            status_code=last_error.status_code,
            attempts=attempts,
        )

    def _attempt(self, tool_name: str, url: str, destination: Path, attempt: int) -> DownloadResult:
        try:
            response = self._session.get(url, stream=True, timeout=self.timeout)
        except _TRANSIENT_EXCEPTIONS as exc:
            raise NetworkError(tool_name, f"{type(exc).__name__}: {exc}", attempts=attempt) from exc
        except requests.RequestException as exc:
            raise NetworkError(tool_name, f"{type(exc).__name__}: {exc}", permanent=True, attempts=attempt) from exc
        try:
            status = response.status_code
            if status >= 400:
                permanent = not is_transient_status(status)
                raise NetworkError(
                    tool_name,
                    f"HTTP {status} from {url}",
                    status_code=status,
                    permanent=permanent,
                    attempts=attempt,
                )
            hasher = hashlib.sha256()
            size = 0
            with destination.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    if not chunk:
                        continue
                    hasher.update(chunk)
                    handle.write(chunk)
                    size += len(chunk)
        except _TRANSIENT_EXCEPTIONS as exc:
            raise NetworkError(tool_name, f"{type(exc).__name__}: {exc}", attempts=attempt) from exc
        except requests.RequestException as exc:
            raise NetworkError(tool_name, f"{type(exc).__name__}: {exc}", permanent=True, attempts=attempt) from exc
        except OSError as exc:
            raise AcquisitionFailure(tool_name, f"unable to write {destination}: {exc}") from exc
        finally:
            response.close()
        LOGGER.debug("downloaded %s (%d bytes, attempt %d)", url, size, attempt)
        return DownloadResult(sha256=hasher.hexdigest(), size_bytes=size, attempts=attempt)

    def _pause(self, tool_name: str, delay: float) -> None:
        if self._sleep is not None:
            self._sleep(delay)
            return
        if self._cancel is not None:
            if self._cancel.wait(delay):
                raise AcquisitionFailure(tool_name, "cancelled during retry backoff")
            return
        time.sleep(delay)


__all__ = [
    "DownloadResult",
    "Downloader",
    "HttpSession",
    "TRANSIENT_STATUS_CODES",
    "backoff_delay",
    "build_session",
    "is_transient_status",
]
