"""Pure-function CSP (Content-Security-Policy) serialization utilities."""

from __future__ import annotations

import json


def build_csp(directives: dict[str, list[str]]) -> str:
    """Build a CSP header value from {directive: [values]} dict.

    Example:
        >>> build_csp({"default-src": ["'self'"], "script-src": ["'self'", "https:"]})
        "default-src 'self'; script-src 'self' https:"
    """
    parts = []
    for directive, values in directives.items():
        if values:
            parts.append(f"{directive} {' '.join(values)}")
        else:
            parts.append(directive)
    return "; ".join(parts)


def policy_line(directive: str, values: list[str]) -> str:
    """Render one recommendation line, e.g. ``"img-src 'self' data:;"``."""
    if not values:
        return f"{directive};"
    return f"{directive} {' '.join(values)};"


def report_to_group(group: str, max_age: int, endpoint_url: str) -> dict:
    """Structured Report-To group descriptor."""
    return {
        "group": group,
        "max_age": max_age,
        "endpoints": [{"url": endpoint_url}],
    }


def compact_json(value: dict) -> str:
    """JSON without whitespace, as it appears in a Report-To header."""
    return json.dumps(value, separators=(",", ":"))
