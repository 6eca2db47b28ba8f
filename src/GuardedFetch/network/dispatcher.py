# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.network.dispatcher",
#   "purpose": "Policy enforcement, transport option assembly, and request-error enhancement",
#   "sections": [
#     {"id": "method", "name": "Method", "anchor": "class-method", "kind": "class"},
#     {"id": "encode-body", "name": "encode_body", "anchor": "function-encode-body", "kind": "function"},
#     {"id": "prettify-response-code", "name": "prettify_response_code", "anchor": "function-prettify-response-code", "kind": "function"},
#     {"id": "enhance-request-error", "name": "enhance_request_error", "anchor": "function-enhance-request-error", "kind": "function"},
#     {"id": "requestdispatcher", "name": "RequestDispatcher", "anchor": "class-requestdispatcher", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Policy enforcement, transport option assembly, and request-error enhancement.

A dispatch runs these steps in order:

1. Resolve the :class:`NetworkPolicy` for the target; a disabled network fails
   with :class:`NetworkDisabledError` before any transport activity.
2. Reject plaintext HTTP to hosts missing from ``unsafe_http_whitelist``
   (:class:`UnsafeProtocolError`). HTTPS is always allowed.
3. Pick per-scheme proxies from the policy (shared keep-alive pools otherwise).
4. Load the policy's CA file through the certificate cache.
5. Encode the body.
6. Run the transport call inside the ``network_concurrency`` gate.
7. Convert :class:`TransportError` failures into a :class:`StructuredError`
   with request and response context.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from ..errors import (
    Derive,
    ErrorBuilder,
    NetworkDisabledError,
    RequestTimeout,
    ResponseInfo,
    StructuredError,
    TransportError,
    UnsafeProtocolError,
    error_field,
)
from ..formatting import FormatType, Renderer
from .certificates import CertificateCache
from .policy import STATUS_REFERENCE_URL, parse_proxy
from .resolver import get_network_settings, host_matches
from .transport import TlsOptions, Transport, TransportCall, TransportResponse

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers only
    from ..settings import Configuration

logger = logging.getLogger(__name__)

__all__ = [
    "Body",
    "Method",
    "NETWORK_CONCURRENCY_SETTING",
    "encode_body",
    "prettify_response_code",
    "enhance_request_error",
    "RequestDispatcher",
]

#: Setting naming the gate every transport call passes through
NETWORK_CONCURRENCY_SETTING = "network_concurrency"

Body = Union[Mapping[str, Any], list, str, bytes, bytearray, memoryview, int, float, bool, None]


class Method(str, Enum):
    """HTTP verbs exposed by the client façade."""

    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"


def encode_body(body: Body, *, json_request: bool = False) -> Tuple[Optional[bytes], Any]:
    """Split ``body`` into ``(raw content, JSON payload)``.

    Raw bytes always pass through; strings pass through unless
    ``json_request`` is set; any other non-``None`` value is sent as JSON.

    Examples:
        >>> encode_body(b"raw")
        (b'raw', None)
        >>> encode_body("text")
        (b'text', None)
        >>> encode_body("text", json_request=True)
        (None, 'text')
        >>> encode_body({"a": 1})
        (None, {'a': 1})
    """
    if body is None:
        return None, None
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body), None
    if isinstance(body, str) and not json_request:
        return body.encode("utf-8"), None
    return None, body


def prettify_response_code(response: ResponseInfo, renderer: Renderer) -> str:
    """Render ``"<code> (<reason>)"`` linked to the status reference page."""
    pretty_code = renderer.pretty(response.status_code, FormatType.NUMBER)
    reason = f" ({response.reason_phrase})" if response.reason_phrase else ""
    href = STATUS_REFERENCE_URL.format(status_code=response.status_code)
    return renderer.hyperlink(f"{pretty_code}{reason}", href)


def enhance_request_error(error: TransportError, renderer: Renderer) -> StructuredError:
    """Wrap a transport failure into a :class:`StructuredError` with context fields.

    Fields are attached in a fixed order, each only when its data exists:
    request method and URL, followed redirects, the retry count when retries
    were exhausted, and the response code.
    """
    enhanced = StructuredError(error, ErrorBuilder(include_stack=False), renderer)

    if isinstance(error, RequestTimeout) and error.phase == "socket":
        setting = renderer.pretty("http_timeout", FormatType.SETTING)
        StructuredError.enhance(
            enhanced,
            ErrorBuilder(summary=Derive(lambda summary: f"{summary} (can be increased via {setting})")),
        )

    request = error.request
    if request is not None:
        StructuredError.enhance(
            enhanced,
            ErrorBuilder(
                fields=[
                    error_field("Request Method", request.method),
                    error_field("Request URL", request.url, FormatType.URL),
                ]
            ),
        )

        if request.redirects:
            StructuredError.enhance(
                enhanced,
                ErrorBuilder(
                    fields=[
                        error_field(
                            "Request Redirects",
                            renderer.pretty_list(request.redirects, FormatType.URL),
                        )
                    ]
                ),
            )

        if request.retry_count == request.retry_limit:
            count = renderer.pretty(request.retry_count, FormatType.NUMBER)
            setting = renderer.pretty("http_retry", FormatType.SETTING)
            StructuredError.enhance(
                enhanced,
                ErrorBuilder(
                    fields=[
                        error_field("Request Retry Count", f"{count} (can be increased via {setting})")
                    ]
                ),
            )

    if error.response is not None:
        StructuredError.enhance(
            enhanced,
            ErrorBuilder(
                fields=[error_field("Response Code", prettify_response_code(error.response, renderer))]
            ),
        )

    return enhanced


class RequestDispatcher:
    """Validate policy, assemble transport options, and execute calls.

    Args:
        transport: Collaborator that executes the call.
        certificates: Shared cache of CA file contents.
    """

    def __init__(self, transport: Transport, certificates: CertificateCache) -> None:
        self.transport = transport
        self.certificates = certificates

    async def dispatch(
        self,
        target: str,
        body: Body = None,
        *,
        configuration: "Configuration",
        headers: Optional[Mapping[str, str]] = None,
        json_request: bool = False,
        method: Union[Method, str] = Method.GET,
    ) -> TransportResponse:
        """Execute one request under the policy resolved for ``target``.

        Raises:
            NetworkDisabledError: The destination is disabled by configuration.
            UnsafeProtocolError: Plaintext HTTP to a non-whitelisted host.
            StructuredError: The transport call failed.
        """
        policy = get_network_settings(target, configuration)
        if policy.enable_network is False:
            raise NetworkDisabledError(target)

        url = urlsplit(target)
        hostname = url.hostname or ""
        if url.scheme == "http" and not host_matches(hostname, configuration.unsafe_http_whitelist):
            raise UnsafeProtocolError(hostname)

        http_proxy = parse_proxy(policy.http_proxy) if policy.http_proxy else None
        https_proxy = parse_proxy(policy.https_proxy) if policy.https_proxy else None

        certificate_authority = None
        if policy.ca_file_path:
            certificate_authority = await self.certificates.get(policy.ca_file_path)

        content, json_payload = encode_body(body, json_request=json_request)
        verb = method.value if isinstance(method, Method) else str(method).upper()

        call = TransportCall(
            method=verb,
            url=target,
            headers=dict(headers or {}),
            content=content,
            json=json_payload,
            timeout=configuration.http_timeout,
            retry_limit=configuration.http_retry,
            http_proxy=http_proxy,
            https_proxy=https_proxy,
            tls=TlsOptions(
                strict=configuration.enable_strict_ssl,
                certificate_authority=certificate_authority,
            ),
        )

        logger.debug(
            "Dispatching request",
            extra={
                "method": verb,
                "hostname": hostname,
                "proxied": (http_proxy if url.scheme == "http" else https_proxy) is not None,
                "custom_ca": certificate_authority is not None,
            },
        )

        gate = configuration.get_limit(NETWORK_CONCURRENCY_SETTING)
        try:
            return await gate.run(lambda: self.transport.send(call))
        except TransportError as error:
            logger.debug(
                "Transport call failed",
                extra={"method": verb, "hostname": hostname, "error": type(error).__name__},
            )
            raise enhance_request_error(error, configuration.renderer()) from error
