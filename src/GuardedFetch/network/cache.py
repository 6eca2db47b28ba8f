"""Single-flight memoisation of successful GET bodies.

Entries are keyed by the literal target string only: headers and the JSON
decoding flag are not part of the key, so two reads that differ only in
``json_response`` share one set of raw bytes and decode them separately.

The in-flight task is registered under its key before the first suspension
point; every caller arriving while it runs awaits the same task instead of
issuing a second request. On success the entry is replaced by the body bytes.
On failure the entry is dropped so a later call retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Union

logger = logging.getLogger(__name__)

__all__ = ["ResponseCache"]


class ResponseCache:
    """Process-lifetime cache of raw response bodies, never evicted."""

    def __init__(self) -> None:
        self._entries: Dict[str, Union[bytes, "asyncio.Task[bytes]"]] = {}

    def __contains__(self, target: str) -> bool:
        return target in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def is_pending(self, target: str) -> bool:
        return isinstance(self._entries.get(target), asyncio.Task)

    async def get(self, target: str, fetch: Callable[[], Awaitable[bytes]]) -> bytes:
        """Return the cached body for ``target``, calling ``fetch`` at most once at a time.

        Args:
            target: Cache key, the literal request target.
            fetch: Coroutine factory producing the body when no entry exists.
        """
        entry = self._entries.get(target)
        if entry is None:
            entry = asyncio.ensure_future(self._populate(target, fetch))
            self._entries[target] = entry
        else:
            logger.debug("Response cache hit", extra={"target": target, "pending": not isinstance(entry, bytes)})
        if isinstance(entry, bytes):
            return entry
        return await entry

    async def _populate(self, target: str, fetch: Callable[[], Awaitable[bytes]]) -> bytes:
        try:
            body = await fetch()
        except BaseException:
            self._entries.pop(target, None)
            raise
        self._entries[target] = body
        return body
