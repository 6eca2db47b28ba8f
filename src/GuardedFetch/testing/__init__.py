"""Testing utilities for exercising the request subsystem without a network.

Provides :class:`RecordingTransport`, a scripted stand-in for the transport
collaborator that records every call, plus helpers to build configurations and
mock-backed :class:`~GuardedFetch.network.transport.HttpxTransport` instances.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Union

import httpx
from tenacity import wait_none

from ..errors import HTTPStatusFailure, RequestInfo, ResponseInfo
from ..network.transport import HttpxTransport, TransportCall, TransportResponse
from ..settings import Configuration

__all__ = [
    "RecordingTransport",
    "make_configuration",
    "mock_httpx_transport",
    "ok_response",
    "status_failure",
]

Outcome = Union[TransportResponse, BaseException, Callable[[TransportCall], TransportResponse]]


def ok_response(body: bytes = b"", *, url: str = "https://example.org/", status_code: int = 200) -> TransportResponse:
    """Build a successful :class:`TransportResponse`."""
    return TransportResponse(
        status_code=status_code,
        reason_phrase=httpx.codes.get_reason_phrase(status_code),
        headers={},
        body=body,
        url=url,
    )


def status_failure(
    status_code: int,
    *,
    method: str = "GET",
    url: str = "https://example.org/",
    redirects: tuple = (),
    retry_count: int = 0,
    retry_limit: int = 0,
) -> HTTPStatusFailure:
    """Build the failure a transport raises for an error status."""
    reason = httpx.codes.get_reason_phrase(status_code)
    return HTTPStatusFailure(
        f"Response code {status_code} ({reason})",
        request=RequestInfo(method, url, tuple(redirects), retry_count, retry_limit),
        response=ResponseInfo(status_code, reason),
    )


class RecordingTransport:
    """Scripted transport collaborator recording every call.

    Outcomes are consumed in order; once exhausted, ``default`` is reused.
    Setting :attr:`hold` makes every call wait on the event, which lets tests
    pile up concurrent callers before anything completes.

    Example:
        >>> transport = RecordingTransport(default=ok_response(b"hi"))
        >>> transport.call_count
        0
    """

    def __init__(self, *outcomes: Outcome, default: Optional[Outcome] = None) -> None:
        self._outcomes: Deque[Outcome] = deque(outcomes)
        self._default = default if default is not None else ok_response()
        self.calls: List[TransportCall] = []
        self.hold: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def queue(self, *outcomes: Outcome) -> None:
        self._outcomes.extend(outcomes)

    async def send(self, call: TransportCall) -> TransportResponse:
        self.calls.append(call)
        outcome = self._outcomes.popleft() if self._outcomes else self._default
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.hold is not None:
                await self.hold.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(call)
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def make_configuration(**values: Any) -> Configuration:
    """Build a validated configuration from keyword values."""
    return Configuration.from_mapping(values)


def mock_httpx_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    max_redirects: int = 10,
    proxies: Optional[List[Any]] = None,
) -> HttpxTransport:
    """Build an :class:`HttpxTransport` whose requests go to ``handler``.

    Retries do not wait. When ``proxies`` is given, the proxy chosen for each
    mounted transport is appended to it.
    """

    def factory(proxy: Any, ssl_context: Any) -> httpx.AsyncBaseTransport:
        if proxies is not None:
            proxies.append(proxy)
        return httpx.MockTransport(handler)

    return HttpxTransport(wait=wait_none(), max_redirects=max_redirects, transport_factory=factory)
