"""CSP directives, baseline tokens, and source-token classification."""

from __future__ import annotations

import enum


class Directive(str, enum.Enum):
    default_src = "default-src"
    script_src = "script-src"
    style_src = "style-src"
    img_src = "img-src"
    font_src = "font-src"
    frame_src = "frame-src"
    connect_src = "connect-src"
    object_src = "object-src"
    frame_ancestors = "frame-ancestors"
    base_uri = "base-uri"
    form_action = "form-action"


class TokenKind(str, enum.Enum):
    self = "self"
    none = "none"
    origin = "origin"
    data_uri_marker = "data-uri-marker"
    inline_marker = "inline-marker"
    hash_source = "hash-source"
    nonce_source = "nonce-source"
    unsafe_inline_fallback = "unsafe-inline-fallback"


SELF = "'self'"
NONE = "'none'"
DATA_URI = "data:"
INLINE = "inline"
UNSAFE_INLINE = "'unsafe-inline'"

# Every directive starts with exactly this token.
BASELINE: dict[Directive, str] = {
    directive: (NONE if directive is Directive.object_src else SELF)
    for directive in Directive
}


def hash_token(algorithm: str, digest_b64: str) -> str:
    """Build a hash-source expression, e.g. ``'sha256-abc='``."""
    return f"'{algorithm}-{digest_b64}'"


def nonce_token(value: str) -> str:
    """Build a nonce-source expression, e.g. ``'nonce-r4nd0m'``."""
    return f"'nonce-{value}'"


def token_kind(token: str) -> TokenKind:
    """Classify a raw source-token string."""
    if token == SELF:
        return TokenKind.self
    if token == NONE:
        return TokenKind.none
    if token == DATA_URI:
        return TokenKind.data_uri_marker
    if token == INLINE:
        return TokenKind.inline_marker
    if token == UNSAFE_INLINE:
        return TokenKind.unsafe_inline_fallback
    if token.startswith(("'sha256-", "'sha384-", "'sha512-")):
        return TokenKind.hash_source
    if token.startswith("'nonce-"):
        return TokenKind.nonce_source
    return TokenKind.origin


_EXPLANATIONS: dict[TokenKind, str] = {
    TokenKind.self: "'self' is required for resources loaded from the same origin.",
    TokenKind.none: "'none' blocks this resource unless specifically needed.",
    TokenKind.unsafe_inline_fallback: (
        "'unsafe-inline' is present, consider replacing with hashes or nonces if possible."
    ),
    TokenKind.hash_source: "{token} is required for an inline resource (script/style) detected on this page.",
    TokenKind.nonce_source: "{token} is required for an inline resource using this nonce.",
    TokenKind.data_uri_marker: (
        "data: is required for resources (e.g. images, styles, fonts) using data URIs."
    ),
}


def explain_token(token: str) -> str | None:
    """One-line reason a kind of source token appears, or None for plain origins."""
    template = _EXPLANATIONS.get(token_kind(token))
    return template.format(token=token) if template else None
