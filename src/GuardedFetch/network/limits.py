# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.network.limits",
#   "purpose": "Admission gate bounding simultaneous outbound transport calls",
#   "sections": [
#     {
#       "id": "concurrencygate",
#       "name": "ConcurrencyGate",
#       "anchor": "class-concurrencygate",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Admission gate bounding simultaneous outbound transport calls.

**Design:**

One gate is shared by every dispatch that reads the same configuration
setting (``network_concurrency`` by default)::

    gate = configuration.get_limit("network_concurrency")
    response = await gate.run(lambda: transport.send(call))

Callers beyond the bound suspend until a slot frees up and are admitted in
FIFO order. Only the wrapped call is gated: policy resolution, cache lookups
and certificate loading happen outside.

The underlying :class:`asyncio.Semaphore` is created on first use so a gate
can be built before an event loop is running, and rebuilt when the gate is
used from a different loop (a configuration reused across ``asyncio.run``
calls).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

__all__ = ["ConcurrencyGate"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyGate:
    """Bounded admission for coroutine factories.

    Example:
        >>> gate = ConcurrencyGate(2, name="network_concurrency")
        >>> gate.limit
        2
    """

    def __init__(self, limit: int, *, name: str = "") -> None:
        self.limit = max(1, int(limit))
        self.name = name
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._active = 0
        self._waiting = 0

    @property
    def active(self) -> int:
        """Number of calls currently admitted."""
        return self._active

    @property
    def waiting(self) -> int:
        """Number of callers suspended at the gate."""
        return self._waiting

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` once a slot is available and return its result."""
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self.limit)
            self._loop = loop
        semaphore = self._semaphore
        if semaphore.locked():
            logger.debug(
                "Concurrency gate saturated; queueing",
                extra={"gate": self.name, "limit": self.limit, "waiting": self._waiting + 1},
            )
        self._waiting += 1
        try:
            await semaphore.acquire()
        finally:
            self._waiting -= 1
        self._active += 1
        try:
            return await factory()
        finally:
            self._active -= 1
            semaphore.release()

    def __repr__(self) -> str:
        return f"ConcurrencyGate(name={self.name!r}, limit={self.limit}, active={self._active})"
