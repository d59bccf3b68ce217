"""Resolve resource URLs to canonical CSP source tokens."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit

import structlog

from csp_auditor.policy.directives import SELF

logger = structlog.get_logger()

# Schemes with a (scheme, host, port) origin. Anything else (javascript:,
# about:, blob:, file:) has an opaque origin and cannot be named in a policy.
_DEFAULT_PORTS: dict[str, int] = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}

_FORBIDDEN_HOST_RE = re.compile(r"[\s<>^|\\%/?#@\[\]]")


def is_data_url(url: str | None) -> bool:
    """True if the URL uses the data: scheme (callers substitute the data: marker)."""
    return bool(url) and url.strip().lower().startswith("data:")


def origin_of(url: str) -> str | None:
    """Return ``scheme://host[:port]`` for an absolute URL, or None if it has no tuple origin."""
    # Null bytes and backslashes parse differently here than in browsers
    if "\x00" in url or "\\" in url:
        return None
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        return None

    host = parts.hostname
    if not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    elif _FORBIDDEN_HOST_RE.search(host):
        return None

    if port is None or port == _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def resolve_origin(url: str | None, document_url: str) -> str | None:
    """Resolve ``url`` against the document and return its source token.

    Returns ``'self'`` for same-origin URLs, the bare origin string for
    cross-origin ones, and None when the URL cannot be parsed (the caller
    drops the candidate).
    """
    if url is None:
        return None
    candidate = url.strip()
    if not candidate:
        return None

    try:
        absolute = urljoin(document_url, candidate)
    except ValueError:
        logger.debug("origin_unresolved", url=url[:200])
        return None

    origin = origin_of(absolute)
    if origin is None:
        logger.debug("origin_unresolved", url=url[:200])
        return None

    if origin == origin_of(document_url):
        return SELF
    return origin


def to_socket_origin(token: str) -> str:
    """Rewrite an http(s) origin to its ws(s) equivalent; keywords pass through."""
    if token.startswith("http"):
        return "ws" + token[len("http"):]
    return token
