# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.client",
#   "purpose": "Public request surface: request/get/put/post/delete.",
#   "sections": [
#     {"id": "response", "name": "Response", "anchor": "class-response", "kind": "class"},
#     {"id": "httpclient", "name": "HttpClient", "anchor": "class-httpclient", "kind": "class"},
#     {"id": "get-default-client", "name": "get_default_client", "anchor": "function-get-default-client", "kind": "function"},
#     {"id": "reset-default-client", "name": "reset_default_client", "anchor": "function-reset-default-client", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Public request surface: request/get/put/post/delete.

:class:`HttpClient` owns the state shared by its calls: the GET response
cache, the certificate cache, and the transport with its keep-alive pools.
Configuration is passed per call, so one client can serve several
configurations while reusing its caches.

Module-level functions delegate to a lazily created process-default client.

Example:
    >>> import asyncio
    >>> from GuardedFetch.client import HttpClient
    >>> from GuardedFetch.settings import Configuration
    >>> async def main():
    ...     async with HttpClient() as client:
    ...         return await client.get("https://example.org/data.json",
    ...                                 configuration=Configuration(), json_response=True)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from .network.cache import ResponseCache
from .network.certificates import CertificateCache
from .network.dispatcher import Body, Method, RequestDispatcher
from .network.transport import HttpxTransport, Transport, TransportResponse
from .settings import Configuration

logger = logging.getLogger(__name__)

__all__ = [
    "Response",
    "HttpClient",
    "get_default_client",
    "reset_default_client",
    "request",
    "get",
    "put",
    "post",
    "delete",
]


@dataclass(frozen=True)
class Response:
    """Completed response returned by :meth:`HttpClient.request`."""

    status_code: int
    reason_phrase: str
    headers: Mapping[str, str]
    body: bytes
    url: str
    redirects: Tuple[str, ...] = ()
    retry_count: int = 0
    data: Any = None

    @classmethod
    def from_transport(cls, response: TransportResponse, *, json_response: bool = False) -> "Response":
        return cls(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=response.headers,
            body=response.body,
            url=response.url,
            redirects=response.redirects,
            retry_count=response.retry_count,
            data=json.loads(response.body) if json_response else None,
        )

    def json(self) -> Any:
        return json.loads(self.body)


def _decode(body: bytes, json_response: bool) -> Any:
    if json_response:
        return json.loads(body)
    return body


class HttpClient:
    """Policy-driven HTTP client with a single-flight GET cache.

    Args:
        transport: Transport collaborator; defaults to :class:`HttpxTransport`.
    """

    def __init__(self, transport: Optional[Transport] = None) -> None:
        self.transport: Transport = transport or HttpxTransport()
        self.certificates = CertificateCache()
        self.responses = ResponseCache()
        self.dispatcher = RequestDispatcher(self.transport, self.certificates)

    async def request(
        self,
        target: str,
        body: Body = None,
        *,
        configuration: Configuration,
        headers: Optional[Mapping[str, str]] = None,
        json_request: bool = False,
        json_response: bool = False,
        method: Union[Method, str] = Method.GET,
    ) -> Response:
        """Dispatch one uncached request and return the full response.

        With ``json_response`` the body is also decoded into :attr:`Response.data`.
        """
        response = await self.dispatcher.dispatch(
            target,
            body,
            configuration=configuration,
            headers=headers,
            json_request=json_request,
            method=method,
        )
        return Response.from_transport(response, json_response=json_response)

    async def get(
        self,
        target: str,
        *,
        configuration: Configuration,
        headers: Optional[Mapping[str, str]] = None,
        json_response: bool = False,
    ) -> Any:
        """Return the body of ``target``, fetched at most once per client.

        The cache key is ``target`` alone. With ``json_response`` the cached
        bytes are decoded on every call.
        """

        async def fetch() -> bytes:
            response = await self.request(target, None, configuration=configuration, headers=headers)
            return response.body

        body = await self.responses.get(target, fetch)
        return _decode(body, json_response)

    async def put(
        self,
        target: str,
        body: Body,
        *,
        configuration: Configuration,
        headers: Optional[Mapping[str, str]] = None,
        json_request: bool = False,
        json_response: bool = False,
    ) -> Any:
        response = await self.request(
            target,
            body,
            configuration=configuration,
            headers=headers,
            json_request=json_request,
            method=Method.PUT,
        )
        return _decode(response.body, json_response)

    async def post(
        self,
        target: str,
        body: Body,
        *,
        configuration: Configuration,
        headers: Optional[Mapping[str, str]] = None,
        json_request: bool = False,
        json_response: bool = False,
    ) -> Any:
        response = await self.request(
            target,
            body,
            configuration=configuration,
            headers=headers,
            json_request=json_request,
            method=Method.POST,
        )
        return _decode(response.body, json_response)

    async def delete(
        self,
        target: str,
        *,
        configuration: Configuration,
        headers: Optional[Mapping[str, str]] = None,
        json_response: bool = False,
    ) -> Any:
        response = await self.request(
            target,
            None,
            configuration=configuration,
            headers=headers,
            method=Method.DELETE,
        )
        return _decode(response.body, json_response)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


# ============================================================================
# Process-default client
# ============================================================================

_default_client: Optional[HttpClient] = None


def get_default_client() -> HttpClient:
    """Get or create the process-default :class:`HttpClient`."""
    global _default_client
    if _default_client is None:
        _default_client = HttpClient()
        logger.debug("Default HTTP client initialized")
    return _default_client


async def reset_default_client() -> None:
    """Close and forget the process-default client (primarily for testing)."""
    global _default_client
    client, _default_client = _default_client, None
    if client is not None:
        await client.aclose()


async def request(target: str, body: Body = None, *, configuration: Configuration, **options: Any) -> Response:
    return await get_default_client().request(target, body, configuration=configuration, **options)


async def get(target: str, *, configuration: Configuration, **options: Any) -> Any:
    return await get_default_client().get(target, configuration=configuration, **options)


async def put(target: str, body: Body, *, configuration: Configuration, **options: Any) -> Any:
    return await get_default_client().put(target, body, configuration=configuration, **options)


async def post(target: str, body: Body, *, configuration: Configuration, **options: Any) -> Any:
    return await get_default_client().post(target, body, configuration=configuration, **options)


async def delete(target: str, *, configuration: Configuration, **options: Any) -> Any:
    return await get_default_client().delete(target, configuration=configuration, **options)
