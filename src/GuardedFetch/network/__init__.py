"""Network subsystem: policy resolution, dispatch, caching, and transport.

This package provides the policy-driven request stack based on:
- HTTPX: pooled async HTTP clients with proxy and TLS support
- Tenacity: retry policies with randomised exponential backoff
- certifi: default trust anchors for HTTPS

Modules:
- policy: NetworkPolicy types, proxy parsing, and transport constants
- resolver: glob-matched per-destination policy resolution
- certificates: single-flight cache of CA file contents
- limits: concurrency gate bounding simultaneous transport calls
- transport: transport contract and the HTTPX implementation
- dispatcher: policy enforcement and request-error enhancement
- cache: single-flight cache of GET bodies

Example:
    >>> from GuardedFetch.network import resolve_network_policy, NetworkPolicy
    >>> resolve_network_policy("https://example.org", [], NetworkPolicy()).enable_network
    True
"""

from GuardedFetch.network.cache import ResponseCache
from GuardedFetch.network.certificates import CertificateCache
from GuardedFetch.network.dispatcher import (
    Method,
    RequestDispatcher,
    encode_body,
    enhance_request_error,
    prettify_response_code,
)
from GuardedFetch.network.limits import ConcurrencyGate
from GuardedFetch.network.policy import (
    NetworkPolicy,
    PolicyFragment,
    ProxySpec,
    parse_proxy,
)
from GuardedFetch.network.resolver import (
    get_network_settings,
    host_matches,
    resolve_network_policy,
)
from GuardedFetch.network.transport import (
    HttpxTransport,
    TlsOptions,
    Transport,
    TransportCall,
    TransportResponse,
    create_ssl_context,
)

__all__ = [
    # Policy
    "NetworkPolicy",
    "PolicyFragment",
    "ProxySpec",
    "parse_proxy",
    "resolve_network_policy",
    "get_network_settings",
    "host_matches",
    # Caches and limits
    "CertificateCache",
    "ResponseCache",
    "ConcurrencyGate",
    # Transport
    "Transport",
    "TransportCall",
    "TransportResponse",
    "TlsOptions",
    "HttpxTransport",
    "create_ssl_context",
    # Dispatch
    "Method",
    "RequestDispatcher",
    "encode_body",
    "enhance_request_error",
    "prettify_response_code",
]
