# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.network.transport",
#   "purpose": "Transport contract and the HTTPX + Tenacity implementation.",
#   "sections": [
#     {"id": "tlsoptions", "name": "TlsOptions", "anchor": "class-tlsoptions", "kind": "class"},
#     {"id": "transportcall", "name": "TransportCall", "anchor": "class-transportcall", "kind": "class"},
#     {"id": "transportresponse", "name": "TransportResponse", "anchor": "class-transportresponse", "kind": "class"},
#     {"id": "transport", "name": "Transport", "anchor": "class-transport", "kind": "class"},
#     {"id": "create-ssl-context", "name": "create_ssl_context", "anchor": "function-create-ssl-context", "kind": "function"},
#     {"id": "httpxtransport", "name": "HttpxTransport", "anchor": "class-httpxtransport", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Transport contract and the HTTPX + Tenacity implementation.

The dispatcher decides *what* policy applies to a call (proxies, TLS trust,
timeout, retry budget) and hands it over as a :class:`TransportCall`. The
transport moves the bytes and reports failures as
:class:`~GuardedFetch.errors.TransportError` subclasses carrying the request
and response context the dispatcher turns into user-facing errors.

:class:`HttpxTransport` design:

- **Pooled clients**: one ``httpx.AsyncClient`` per (proxies, TLS) combination,
  created lazily and kept for the transport lifetime, so every unproxied call
  reuses the same keep-alive pools.
- **TLS**: certifi bundle by default; a configured CA file replaces it;
  non-strict mode disables verification.
- **Retries**: Tenacity ``AsyncRetrying`` with randomised exponential backoff,
  idempotent methods only, on network errors, timeouts and transient statuses.
- **Redirects**: followed manually so every hop is recorded, even when a later
  hop fails.
"""

from __future__ import annotations

import hashlib
import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

import certifi
import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from ..errors import (
    HTTPStatusFailure,
    RequestFailed,
    RequestInfo,
    RequestTimeout,
    ResponseInfo,
)
from .policy import (
    KEEPALIVE_EXPIRY,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
    MAX_REDIRECT_HOPS,
    RETRY_BACKOFF_MAX,
    RETRY_BACKOFF_MULTIPLIER,
    RETRYABLE_METHODS,
    RETRYABLE_STATUS_CODES,
    ProxySpec,
)

logger = logging.getLogger(__name__)

__all__ = [
    "TlsOptions",
    "TransportCall",
    "TransportResponse",
    "Transport",
    "create_ssl_context",
    "HttpxTransport",
]


# ============================================================================
# Contract
# ============================================================================


@dataclass(frozen=True)
class TlsOptions:
    """Trust settings for HTTPS calls."""

    strict: bool = True
    certificate_authority: Optional[bytes] = None

    def cache_key(self) -> Tuple[bool, Optional[str]]:
        digest = None
        if self.certificate_authority is not None:
            digest = hashlib.sha256(self.certificate_authority).hexdigest()
        return (self.strict, digest)


@dataclass(frozen=True)
class TransportCall:
    """Everything the transport needs to execute one request.

    ``content`` and ``json`` are mutually exclusive; both ``None`` means no body.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None
    json: Any = None
    timeout: float = 60.0
    retry_limit: int = 0
    http_proxy: Optional[ProxySpec] = None
    https_proxy: Optional[ProxySpec] = None
    tls: TlsOptions = field(default_factory=TlsOptions)


@dataclass(frozen=True)
class TransportResponse:
    """Successful response with its body fully read."""

    status_code: int
    reason_phrase: str
    headers: Mapping[str, str]
    body: bytes
    url: str
    redirects: Tuple[str, ...] = ()
    retry_count: int = 0


class Transport(Protocol):
    """Collaborator executing calls on behalf of the dispatcher."""

    async def send(self, call: TransportCall) -> TransportResponse: ...

    async def aclose(self) -> None: ...


# ============================================================================
# HTTPX implementation
# ============================================================================


TransportFactory = Callable[[Optional[ProxySpec], ssl.SSLContext], httpx.AsyncBaseTransport]


def create_ssl_context(tls: TlsOptions) -> ssl.SSLContext:
    """Create the SSL context for ``tls``.

    Uses the certifi bundle unless a certificate authority is supplied, in
    which case it becomes the only trust anchor.
    """
    if not tls.strict:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED (enable_strict_ssl is false)")
        return ctx

    if tls.certificate_authority is None:
        ctx = ssl.create_default_context(cafile=certifi.where())
    elif b"-----BEGIN" in tls.certificate_authority:
        ctx = ssl.create_default_context(cadata=tls.certificate_authority.decode("ascii"))
    else:
        ctx = ssl.create_default_context(cadata=tls.certificate_authority)
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def _default_transport_factory(
    proxy: Optional[ProxySpec], ssl_context: ssl.SSLContext
) -> httpx.AsyncBaseTransport:
    return httpx.AsyncHTTPTransport(
        verify=ssl_context,
        proxy=httpx.Proxy(proxy.to_url()) if proxy is not None else None,
        limits=httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
            keepalive_expiry=KEEPALIVE_EXPIRY,
        ),
    )


class _RetryableStatus(Exception):
    """Internal signal carrying a transient error response into Tenacity."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Response code {response.status_code}")
        self.response = response


def _timeout_phase(exc: httpx.TimeoutException) -> str:
    if isinstance(exc, httpx.ConnectTimeout):
        return "connect"
    if isinstance(exc, httpx.PoolTimeout):
        return "pool"
    return "socket"


def _request_of(exc: httpx.HTTPError) -> Optional[httpx.Request]:
    try:
        return exc.request
    except RuntimeError:
        return None


def _status_message(status_code: int, reason_phrase: str) -> str:
    if reason_phrase:
        return f"Response code {status_code} ({reason_phrase})"
    return f"Response code {status_code}"


class HttpxTransport:
    """Transport collaborator backed by pooled ``httpx.AsyncClient`` instances.

    Args:
        wait: Tenacity wait strategy between retries.
        max_redirects: Redirect hops followed before failing.
        transport_factory: Builds the low-level transport for a proxy and SSL
            context; tests pass ``httpx.MockTransport`` here.
    """

    def __init__(
        self,
        *,
        wait: Optional[wait_base] = None,
        max_redirects: int = MAX_REDIRECT_HOPS,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self._wait = wait or wait_random_exponential(
            multiplier=RETRY_BACKOFF_MULTIPLIER, max=RETRY_BACKOFF_MAX
        )
        self._max_redirects = max_redirects
        self._transport_factory = transport_factory or _default_transport_factory
        self._clients: Dict[Tuple[Any, ...], httpx.AsyncClient] = {}

    def _client_for(self, call: TransportCall) -> httpx.AsyncClient:
        key = (call.http_proxy, call.https_proxy, call.tls.cache_key())
        client = self._clients.get(key)
        if client is None:
            ssl_context = create_ssl_context(call.tls)
            client = httpx.AsyncClient(
                mounts={
                    "http://": self._transport_factory(call.http_proxy, ssl_context),
                    "https://": self._transport_factory(call.https_proxy, ssl_context),
                },
                follow_redirects=False,
                trust_env=False,
            )
            self._clients[key] = client
            logger.debug(
                "HTTPX client created",
                extra={
                    "http_proxy": call.http_proxy.to_url() if call.http_proxy else None,
                    "https_proxy": call.https_proxy.to_url() if call.https_proxy else None,
                    "strict_tls": call.tls.strict,
                    "custom_ca": call.tls.certificate_authority is not None,
                    "pooled_clients": len(self._clients),
                },
            )
        return client

    async def send(self, call: TransportCall) -> TransportResponse:
        """Execute ``call``, retrying and following redirects.

        Raises:
            RequestTimeout: A timeout fired on the last attempt.
            HTTPStatusFailure: The final response status was >= 400.
            RequestFailed: Any other transport failure.
        """
        client = self._client_for(call)
        method = call.method.upper()
        idempotent = method in RETRYABLE_METHODS
        state: Dict[str, Any] = {"attempts": 0, "redirects": [], "url": call.url}

        def _should_retry(exc: BaseException) -> bool:
            if not idempotent:
                return False
            if isinstance(exc, _RetryableStatus):
                return True
            return isinstance(exc, httpx.TransportError)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(call.retry_limit + 1),
            wait=self._wait,
            retry=retry_if_exception(_should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        def _request_info() -> RequestInfo:
            return RequestInfo(
                method=method,
                url=state["url"],
                redirects=tuple(state["redirects"]),
                retry_count=max(0, state["attempts"] - 1),
                retry_limit=call.retry_limit,
            )

        try:
            async for attempt in retrying:
                with attempt:
                    state["attempts"] += 1
                    state["redirects"] = []
                    state["url"] = call.url
                    response = await self._follow(client, call, state)
                    if response.status_code in RETRYABLE_STATUS_CODES:
                        raise _RetryableStatus(response)
        except _RetryableStatus as exc:
            response = exc.response
        except httpx.TimeoutException as exc:
            phase = _timeout_phase(exc)
            raise RequestTimeout(
                f"Timeout awaiting '{phase}' for {int(call.timeout * 1000)}ms",
                phase=phase,
                request=_request_info() if _request_of(exc) is not None else None,
            ) from exc
        except httpx.HTTPError as exc:
            raise RequestFailed(
                str(exc) or type(exc).__name__,
                request=_request_info() if _request_of(exc) is not None else None,
            ) from exc

        if response.status_code >= 400:
            raise HTTPStatusFailure(
                _status_message(response.status_code, response.reason_phrase),
                request=_request_info(),
                response=ResponseInfo(response.status_code, response.reason_phrase),
            )

        return TransportResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=dict(response.headers),
            body=response.content,
            url=str(response.url),
            redirects=tuple(state["redirects"]),
            retry_count=max(0, state["attempts"] - 1),
        )

    async def _follow(
        self, client: httpx.AsyncClient, call: TransportCall, state: Dict[str, Any]
    ) -> httpx.Response:
        method = call.method.upper()
        content = call.content
        json_payload = call.json
        url = call.url
        redirects: List[str] = state["redirects"]

        for _ in range(self._max_redirects + 1):
            state["url"] = url
            response = await client.request(
                method,
                url,
                headers=dict(call.headers),
                content=content,
                json=json_payload,
                timeout=call.timeout,
            )
            if not response.is_redirect:
                return response

            url = str(response.url.join(response.headers["location"]))
            redirects.append(url)
            if response.status_code == 303 or (
                response.status_code in (301, 302) and method == "POST"
            ):
                method = "GET"
                content = None
                json_payload = None

        raise httpx.TooManyRedirects(
            f"Exceeded maximum allowed redirects ({self._max_redirects})",
            request=response.request,
        )

    async def aclose(self) -> None:
        """Close every pooled client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as e:
                logger.error(f"Error closing HTTP client: {e}")
