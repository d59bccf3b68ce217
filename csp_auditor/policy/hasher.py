"""Content-addressed hash-source tokens for inline scripts and styles."""

from __future__ import annotations

import asyncio
import base64
import hashlib
from typing import Protocol

import structlog

from csp_auditor.policy.directives import hash_token

logger = structlog.get_logger()


class DigestProvider(Protocol):
    """Produces a fixed-length digest of a byte sequence."""

    algorithm: str

    async def digest(self, data: bytes) -> bytes: ...


class Sha256DigestProvider:
    """SHA-256 digests computed off the event loop."""

    algorithm = "sha256"

    async def digest(self, data: bytes) -> bytes:
        return await asyncio.to_thread(_sha256, data)


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def default_digest_provider() -> DigestProvider | None:
    """Return a SHA-256 provider, or None when the interpreter lacks sha256."""
    if "sha256" not in hashlib.algorithms_available:
        logger.warning("digest_capability_missing", algorithm="sha256")
        return None
    return Sha256DigestProvider()


async def hash_source(content: str, provider: DigestProvider) -> str:
    """Compute the CSP hash-source token for exact inline text content.

    Browsers hash the UTF-8 encoding of the element's text, so no
    normalization is applied here.
    """
    raw = await provider.digest(content.encode("utf-8"))
    return hash_token(provider.algorithm, base64.b64encode(raw).decode("ascii"))
