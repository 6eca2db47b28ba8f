"""Resolve the network policy that applies to a destination.

Configuration supplies glob-scoped fragments (``network_settings``) and global
defaults. Fragments are ranked by pattern length, longest first, so more
specific patterns win; equal lengths keep configuration order. Every policy key
is resolved independently, which lets a host inherit its proxy from one pattern
and its ``enable_network`` flag from another.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence
from urllib.parse import urlsplit

from .policy import POLICY_KEYS, NetworkPolicy, PolicyFragment

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers only
    from ..settings import Configuration

logger = logging.getLogger(__name__)

__all__ = [
    "target_hostname",
    "host_matches",
    "resolve_network_policy",
    "get_network_settings",
]


def target_hostname(target: str) -> str:
    """Return the lower-cased hostname of ``target`` (empty when absent)."""
    return urlsplit(target).hostname or ""


def host_matches(hostname: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` when ``hostname`` matches any of the glob ``patterns``."""
    if not hostname:
        return False
    return any(fnmatchcase(hostname, pattern.lower()) for pattern in patterns)


def resolve_network_policy(
    target: str,
    fragments: Sequence[PolicyFragment],
    defaults: NetworkPolicy,
) -> NetworkPolicy:
    """Merge the fragments matching ``target`` with the global defaults.

    Args:
        target: URL of the destination.
        fragments: Glob-scoped partial settings in configuration order.
        defaults: Global values used for keys no matching fragment defines.

    Returns:
        A policy where every key is defined.
    """
    hostname = target_hostname(target)
    # sorted() is stable, so equal-length patterns keep configuration order
    ranked = sorted(fragments, key=lambda fragment: len(fragment.pattern), reverse=True)
    matching = [fragment for fragment in ranked if host_matches(hostname, [fragment.pattern])]

    resolved: Dict[str, object] = {}
    for key in POLICY_KEYS:
        value: Optional[object] = None
        for fragment in matching:
            candidate = getattr(fragment, key)
            if candidate is not None:
                value = candidate
                break
        resolved[key] = getattr(defaults, key) if value is None else value

    policy = NetworkPolicy(**resolved)  # type: ignore[arg-type]
    logger.debug(
        "Resolved network policy",
        extra={
            "hostname": hostname,
            "matched_patterns": [fragment.pattern for fragment in matching],
            "enable_network": policy.enable_network,
        },
    )
    return policy


def get_network_settings(target: str, configuration: "Configuration") -> NetworkPolicy:
    """Resolve the policy for ``target`` from a :class:`Configuration`."""
    return resolve_network_policy(
        target,
        configuration.policy_fragments(),
        configuration.network_defaults(),
    )
