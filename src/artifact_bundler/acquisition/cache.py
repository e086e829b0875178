# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Content-addressed on-disk cache of downloaded tool binaries.

Blobs live at ``<root>/blobs/<sha256>`` and are shared between every key that
resolves to the same content. ``index.json`` maps a lookup key of
``(tool, platform, expected_hash or url)`` to the blob digest and original
filename.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, ValidationError

from ..models import ToolReference
from ..platforms import Platform

LOGGER = logging.getLogger(__name__)

INDEX_FILENAME: Final[str] = "index.json"
INDEX_VERSION: Final[int] = 1
_CHUNK_SIZE: Final[int] = 1024 * 1024


class CacheEntry(BaseModel):
    """Index record pointing at a cached blob."""

    model_config = ConfigDict(frozen=True)

    sha256: str
    filename: str
    size_bytes: int
    url: str | None = None
    stored_at: datetime


class CacheIndex(BaseModel):
    """Serialised form of ``index.json``."""

    version: int = INDEX_VERSION
    entries: dict[str, CacheEntry] = {}


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of ``path``."""

    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def cache_key(reference: ToolReference, platform: Platform) -> str:
    """Return the index key for ``reference`` built for ``platform``."""

    discriminator = reference.expected_hash or reference.url or ""
    return f"{reference.tool_name}|{platform.value}|{discriminator}"


class ToolCache:
    """Thread-safe content-addressed blob store with a JSON index."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.blob_dir = root / "blobs"
        self.index_path = root / INDEX_FILENAME
        self._lock = threading.Lock()

    def blob_path(self, digest: str) -> Path:
        """Return the storage path for content with ``digest``."""

        return self.blob_dir / digest

    def staging_file(self) -> Path:
        """Create and return an empty temporary file inside the cache root."""

        self.root.mkdir(parents=True, exist_ok=True)
        handle, name = tempfile.mkstemp(prefix=".download-", dir=self.root)
        os.close(handle)
        return Path(name)

    def get(self, key: str) -> tuple[CacheEntry, Path] | None:
        """Return the verified entry and blob path for ``key``.

        The blob is re-hashed on every hit; a blob whose content no longer
        matches its digest is removed and the lookup reports a miss. Hashing
        happens outside the lock so concurrent lookups of other tools are not
        serialised behind a large binary.
        """

        with self._lock:
            entry = self._read_index().entries.get(key)
        if entry is None:
            return None
        blob = self.blob_path(entry.sha256)
        if _blob_matches(blob, entry.sha256):
            return entry, blob
        with self._lock:
            index = self._read_index()
            if index.entries.get(key) != entry:
                # replaced by a concurrent put while we were hashing
                return None
            LOGGER.warning("discarding corrupt or missing cache blob %s for %s", entry.sha256, key)
            blob.unlink(missing_ok=True)
            del index.entries[key]
            self._write_index(index)
            return None

    def put(self, key: str, staged: Path, *, digest: str, filename: str, url: str | None) -> Path:
        """Move ``staged`` into the blob store and record it under ``key``.

        Args:
            key: Index key from :func:`cache_key`.
            staged: Downloaded file, already hashed and verified by the caller.
            digest: SHA-256 of ``staged``.
            filename: Original filename from the download URL.
            url: Source URL recorded for provenance.

        Returns:
            Path: Location of the stored blob.
        """

        with self._lock:
            self.blob_dir.mkdir(parents=True, exist_ok=True)
            blob = self.blob_path(digest)
            size = staged.stat().st_size
            if blob.exists():
                staged.unlink(missing_ok=True)
            else:
                os.replace(staged, blob)
            index = self._read_index()
            index.entries[key] = CacheEntry(
                sha256=digest,
                filename=filename,
                size_bytes=size,
                url=url,
                stored_at=datetime.now(UTC),
            )
            self._write_index(index)
            return blob

    def _read_index(self) -> CacheIndex:
        if not self.index_path.is_file():
            return CacheIndex()
        try:
            return CacheIndex.model_validate_json(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            LOGGER.warning("ignoring unreadable cache index %s: %s", self.index_path, exc)
            return CacheIndex()

    def _write_index(self, index: CacheIndex) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(index.model_dump(mode="json"), indent=2, sort_keys=True)
        temp = self.index_path.with_suffix(".json.tmp")
        temp.write_text(payload + "\n", encoding="utf-8")
        os.replace(temp, self.index_path)


def _blob_matches(blob: Path, digest: str) -> bool:
    try:
        return blob.is_file() and sha256_file(blob) == digest
    except OSError as exc:
        LOGGER.warning("unable to hash cache blob %s: %s", blob, exc)
        return False


__all__ = ["CacheEntry", "INDEX_FILENAME", "ToolCache", "cache_key", "sha256_file"]
