"""Validation of base URLs against server-side request forgery."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_VALID_SCHEME = re.compile(r"^https?://")

# Private networks and metadata endpoints; localhost is allowed on purpose.
_PRIVATE_HOST_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"(^|\.)10\.",
        r"(^|\.)172\.(1[6-9]|2[0-9]|3[0-1])\.",
        r"(^|\.)192\.168\.",
        r"(^|\.)169\.254\.169\.254\Z",
        r"(^|\.)fc00:",
        r"^fe80:",
        r"^::1",
    )
)


class UnsafeURLError(ValueError):
    """Raised when a base URL is malformed or points at a forbidden host."""


def _hostname(netloc: str) -> str:
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host[1:]
    name, sep, port = host.rpartition(":")
    if sep and (port == "" or port.isdigit()):
        return name
    return host


def validate_base_url(base_url: str) -> str:
    """Check that base_url is http(s) and not on a private network; return its host."""
    if not _VALID_SCHEME.match(base_url):
        raise UnsafeURLError("invalid URL scheme: only http and https are allowed")

    try:
        parts = urlsplit(base_url)
        _ = parts.port
    except ValueError as exc:
        raise UnsafeURLError(f"invalid URL: {exc}") from exc

    hostname = _hostname(parts.netloc)
    if not hostname:
        raise UnsafeURLError("URL has no hostname")

    if any(pattern.search(hostname) for pattern in _PRIVATE_HOST_PATTERNS):
        raise UnsafeURLError(
            f"SSRF protection: cannot connect to private/internal network: {hostname}"
        )
    return hostname