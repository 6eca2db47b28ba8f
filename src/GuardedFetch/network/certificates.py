"""Memoised loading of TLS trust-anchor files.

The first caller for a path starts the read and registers the in-flight task
before suspending, so concurrent callers share one read. A successful read is
kept as bytes for the cache lifetime; a failed read is propagated to every
waiter and then forgotten so the next call retries.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Dict, Union

logger = logging.getLogger(__name__)

__all__ = ["CertificateCache"]

PathLike = Union[str, "os.PathLike[str]"]


def _read_bytes(path: str) -> bytes:
    return Path(path).read_bytes()


class CertificateCache:
    """Single-flight cache of certificate file contents keyed by path.

    Args:
        reader: Synchronous file reader, run in a worker thread.
    """

    def __init__(self, reader: Callable[[str], bytes] = _read_bytes) -> None:
        self._reader = reader
        self._entries: Dict[str, Union[bytes, "asyncio.Task[bytes]"]] = {}

    def __contains__(self, path: PathLike) -> bool:
        return os.fspath(path) in self._entries

    async def get(self, path: PathLike) -> bytes:
        """Return the contents of ``path``, reading it at most once."""
        key = os.fspath(path)
        entry = self._entries.get(key)
        if entry is None:
            entry = asyncio.ensure_future(self._load(key))
            self._entries[key] = entry
        if isinstance(entry, bytes):
            return entry
        return await entry

    async def _load(self, key: str) -> bytes:
        try:
            data = await asyncio.to_thread(self._reader, key)
        except BaseException:
            self._entries.pop(key, None)
            raise
        self._entries[key] = data
        logger.debug("Loaded certificate authority", extra={"ca_file_path": key, "bytes": len(data)})
        return data
