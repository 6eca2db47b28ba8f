# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.network.policy",
#   "purpose": "Network policy types and transport defaults.",
#   "sections": [
#     {"id": "networkpolicy", "name": "NetworkPolicy", "anchor": "class-networkpolicy", "kind": "class"},
#     {"id": "policyfragment", "name": "PolicyFragment", "anchor": "class-policyfragment", "kind": "class"},
#     {"id": "proxyspec", "name": "ProxySpec", "anchor": "class-proxyspec", "kind": "class"},
#     {"id": "parse-proxy", "name": "parse_proxy", "anchor": "function-parse-proxy", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Network policy types and transport defaults.

Defines the per-destination policy resolved from configuration, the glob-scoped
fragments it is resolved from, proxy endpoints, and the constants handed to the
transport (pooling, retryable methods and statuses, redirect budget).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from ..errors import ConfigurationError

# ============================================================================
# Connection Pooling
# ============================================================================

#: Maximum concurrent connections per pooled client
MAX_CONNECTIONS = 100

#: Maximum idle connections kept alive per pooled client
MAX_KEEPALIVE_CONNECTIONS = 20

#: How long to keep idle connections alive (seconds)
KEEPALIVE_EXPIRY = 5.0


# ============================================================================
# Retry & Redirect Policy
# ============================================================================

#: Methods the transport retries on transient failures
RETRYABLE_METHODS = frozenset({"GET", "PUT", "HEAD", "DELETE", "OPTIONS", "TRACE"})

#: Response statuses treated as transient
RETRYABLE_STATUS_CODES = frozenset({408, 413, 429, 500, 502, 503, 504, 521, 522, 524})

#: Maximum number of redirect hops followed before giving up
MAX_REDIRECT_HOPS = 10

#: Backoff bounds between retries (seconds)
RETRY_BACKOFF_MULTIPLIER = 0.5
RETRY_BACKOFF_MAX = 10.0


# ============================================================================
# Presentation
# ============================================================================

#: Reference page linked from rendered response codes
STATUS_REFERENCE_URL = "https://developer.mozilla.org/en-US/docs/Web/HTTP/Status/{status_code}"


# ============================================================================
# Policy Types
# ============================================================================

#: Keys resolved independently for every destination
POLICY_KEYS = ("enable_network", "ca_file_path", "http_proxy", "https_proxy")


@dataclass(frozen=True)
class NetworkPolicy:
    """Fully-defaulted network settings for one destination."""

    enable_network: bool = True
    ca_file_path: Optional[Path] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None


@dataclass(frozen=True)
class PolicyFragment:
    """Partial network settings scoped to hostnames matching ``pattern``.

    ``None`` means the fragment does not define the key.
    """

    pattern: str
    enable_network: Optional[bool] = None
    ca_file_path: Optional[Path] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None


@dataclass(frozen=True)
class ProxySpec:
    """Proxy endpoint reached over plain HTTP; ``port=None`` keeps the default."""

    host: str
    port: Optional[int] = None

    def to_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None:
            return f"http://{host}"
        return f"http://{host}:{self.port}"


def parse_proxy(specifier: str) -> ProxySpec:
    """Extract the proxy host and optional port from a proxy URL.

    Credentials and paths are ignored.

    Examples:
        >>> parse_proxy("http://proxy:8080")
        ProxySpec(host='proxy', port=8080)
        >>> parse_proxy("http://proxy.internal")
        ProxySpec(host='proxy.internal', port=None)
    """
    parsed = urlsplit(specifier)
    if not parsed.hostname:
        raise ConfigurationError(f"Invalid proxy URL '{specifier}': missing host")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid proxy URL '{specifier}': {exc}") from exc
    return ProxySpec(host=parsed.hostname, port=port)


__all__ = [
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "KEEPALIVE_EXPIRY",
    "RETRYABLE_METHODS",
    "RETRYABLE_STATUS_CODES",
    "MAX_REDIRECT_HOPS",
    "RETRY_BACKOFF_MULTIPLIER",
    "RETRY_BACKOFF_MAX",
    "STATUS_REFERENCE_URL",
    "POLICY_KEYS",
    "NetworkPolicy",
    "PolicyFragment",
    "ProxySpec",
    "parse_proxy",
]
