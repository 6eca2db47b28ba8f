"""Public API for GuardedFetch, a policy-driven asynchronous HTTP client.

Per-destination network policy is resolved from glob-scoped configuration;
plaintext HTTP and disabled destinations are rejected before any network
activity; calls go through a shared concurrency gate with proxy, TLS, timeout
and retry settings; identical in-flight GETs are deduplicated; transport
failures surface as :class:`StructuredError` values with request and response
context.
"""

from __future__ import annotations

from .client import HttpClient, Response, delete, get, get_default_client, post, put, request, reset_default_client
from .errors import (
    ConfigurationError,
    Derive,
    ErrorBuilder,
    ErrorField,
    GuardedFetchError,
    NetworkDisabledError,
    Replace,
    StructuredError,
    TransportError,
    UnsafeProtocolError,
    error_field,
)
from .formatting import FormatType, PlainRenderer, RichRenderer
from .network import Method, NetworkPolicy
from .settings import Configuration, NetworkSettings, load_configuration

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Client
    "HttpClient",
    "Response",
    "Method",
    "request",
    "get",
    "put",
    "post",
    "delete",
    "get_default_client",
    "reset_default_client",
    # Configuration
    "Configuration",
    "NetworkSettings",
    "NetworkPolicy",
    "load_configuration",
    # Errors
    "GuardedFetchError",
    "ConfigurationError",
    "NetworkDisabledError",
    "UnsafeProtocolError",
    "TransportError",
    "StructuredError",
    "ErrorBuilder",
    "ErrorField",
    "error_field",
    "Replace",
    "Derive",
    # Rendering
    "FormatType",
    "PlainRenderer",
    "RichRenderer",
]
