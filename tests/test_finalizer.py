"""Tests for inline hashing, nonce handling and the emission filter."""

from __future__ import annotations

import hashlib

import pytest

from csp_auditor.policy.directives import Directive
from csp_auditor.policy.finalizer import Finalizer, emitted_directives
from csp_auditor.policy.hasher import Sha256DigestProvider, default_digest_provider, hash_source
from csp_auditor.policy.scanner import StaticScanner
from csp_auditor.policy.state import AuditError, AuditPhase
from tests.helpers.hashing import sha256_token


class FlakyProvider:
    """Fails for one specific payload."""

    algorithm = "sha256"

    def __init__(self, bad: bytes) -> None:
        self.bad = bad
        self.calls: list[bytes] = []

    async def digest(self, data: bytes) -> bytes:
        self.calls.append(data)
        if data == self.bad:
            raise RuntimeError("digest engine failure")
        return hashlib.sha256(data).digest()


async def _finalize(state, make_document, html, provider=..., **kwargs):
    StaticScanner(state, make_document(html)).scan()
    if provider is ...:
        provider = Sha256DigestProvider()
    return await Finalizer(state, provider, **kwargs).finalize("https://example.com/index.html")


# ── Hasher ──────────────────────────────────────────────────────────────


class TestHasher:
    @pytest.mark.asyncio
    async def test_hash_source_format(self):
        token = await hash_source("console.log(1)", Sha256DigestProvider())
        assert token == sha256_token("console.log(1)")
        assert token.startswith("'sha256-") and token.endswith("='")

    @pytest.mark.asyncio
    async def test_hash_is_exact_content(self):
        provider = Sha256DigestProvider()
        assert await hash_source("a()", provider) != await hash_source(" a() ", provider)

    def test_default_provider_available(self):
        assert isinstance(default_digest_provider(), Sha256DigestProvider)

    def test_default_provider_missing(self, monkeypatch):
        monkeypatch.setattr(hashlib, "algorithms_available", {"md5"})
        assert default_digest_provider() is None


# ── Inline hashing ──────────────────────────────────────────────────────


class TestInlineHashing:
    @pytest.mark.asyncio
    async def test_same_origin_script_plus_inline(self, state, make_document):
        result = await _finalize(
            state, make_document,
            '<script src="/app.js"></script><script>console.log(1)</script>',
        )
        assert result.directives["script-src"] == ["'self'", sha256_token("console.log(1)")]

    @pytest.mark.asyncio
    async def test_identical_content_one_token(self, state, make_document):
        await _finalize(state, make_document, "<script>a()</script><div></div><script>a()</script>")
        token = sha256_token("a()")
        assert state.tokens(Directive.script_src) == ["'self'", token]
        assert state.justifications(Directive.script_src)[token] == [
            "Inline script (hash shown)",
            "Inline script (hash shown)",
        ]

    @pytest.mark.asyncio
    async def test_identical_content_digested_once(self, state, make_document):
        provider = FlakyProvider(bad=b"")
        await _finalize(state, make_document, "<script>a()</script><script>a()</script>", provider)
        assert provider.calls == [b"a()"]

    @pytest.mark.asyncio
    async def test_inline_styles_hashed(self, state, make_document):
        result = await _finalize(state, make_document, "<style>p{color:red}</style>")
        assert result.directives["style-src"] == ["'self'", sha256_token("p{color:red}")]
        assert state.justifications(Directive.style_src)[sha256_token("p{color:red}")] == [
            "Inline style (hash shown)",
        ]

    @pytest.mark.asyncio
    async def test_placeholder_pruned_but_explained(self, state, make_document):
        result = await _finalize(state, make_document, "<script>a()</script>")
        assert "inline" not in result.all_directives["script-src"]
        assert "inline" in result.justifications["script-src"]


# ── Nonces ──────────────────────────────────────────────────────────────


class TestNonces:
    @pytest.mark.asyncio
    async def test_script_nonce_suppresses_hashes(self, state, make_document):
        result = await _finalize(
            state, make_document,
            '<script nonce="n1">a()</script><script>b()</script><script>c()</script>',
        )
        script_src = result.all_directives["script-src"]
        assert not any(t.startswith("'sha256-") for t in script_src)
        assert script_src == ["'self'", "'nonce-n1'"]

    @pytest.mark.asyncio
    async def test_nonce_added_to_both_directives(self, state, make_document):
        result = await _finalize(state, make_document, '<script nonce="n1">a()</script>')
        assert "'nonce-n1'" in result.all_directives["script-src"]
        assert "'nonce-n1'" in result.all_directives["style-src"]
        assert state.justifications(Directive.style_src)["'nonce-n1'"] == ["Style with nonce"]

    @pytest.mark.asyncio
    async def test_style_nonce_only_affects_styles(self, state, make_document):
        result = await _finalize(
            state, make_document,
            '<style nonce="s1">p{}</style><style>q{}</style><script>a()</script>',
        )
        assert result.all_directives["style-src"] == ["'self'", "'nonce-s1'"]
        assert result.all_directives["script-src"] == ["'self'", sha256_token("a()"), "'nonce-s1'"]

    @pytest.mark.asyncio
    async def test_distinct_nonce_values_deduplicated(self, state, make_document):
        result = await _finalize(
            state, make_document,
            '<script nonce="n1">a()</script><script nonce="n1">b()</script><style nonce="n2">p{}</style>',
        )
        assert result.all_directives["script-src"] == ["'self'", "'nonce-n1'", "'nonce-n2'"]
        assert [n.value for n in result.nonces] == ["n1", "n1", "n2"]


# ── Digest fallback ─────────────────────────────────────────────────────


class TestDigestFallback:
    @pytest.mark.asyncio
    async def test_missing_provider_falls_back_for_all(self, state, make_document):
        result = await _finalize(
            state, make_document,
            "<script>a()</script><script>b()</script><style>p{}</style>",
            provider=None,
        )
        assert result.directives["script-src"] == ["'self'", "'unsafe-inline'"]
        assert result.directives["style-src"] == ["'self'", "'unsafe-inline'"]
        assert len(result.justifications["script-src"]["'unsafe-inline'"]) == 2

    @pytest.mark.asyncio
    async def test_single_failure_is_isolated(self, state, make_document):
        provider = FlakyProvider(bad=b"bad()")
        result = await _finalize(
            state, make_document,
            "<script>good()</script><script>bad()</script><script>fine()</script>",
            provider,
        )
        assert result.directives["script-src"] == [
            "'self'",
            sha256_token("good()"),
            "'unsafe-inline'",
            sha256_token("fine()"),
        ]


# ── Emission filter ─────────────────────────────────────────────────────


class TestEmission:
    def test_empty_state_keeps_conservative_baseline(self, state):
        assert emitted_directives(state) == {"default-src": ["'self'"]}

    def test_baseline_only_directives_excluded(self, state):
        state.record(Directive.img_src, "https://img.test", "<img>")
        state.record(Directive.script_src, "'self'", "<script src=/a.js>")
        assert emitted_directives(state) == {"img-src": ["'self'", "https://img.test"]}

    def test_emit_defaults_includes_everything(self, state):
        emitted = emitted_directives(state, emit_defaults=True)
        assert list(emitted) == [d.value for d in Directive]
        assert emitted["object-src"] == ["'none'"]

    @pytest.mark.asyncio
    async def test_object_without_data_not_emitted(self, state, make_document):
        result = await _finalize(state, make_document, "<object></object>")
        assert "object-src" not in result.directives
        assert result.justifications["object-src"] == {"'none'": ["No object/embed data specified"]}
        assert result.directives == {"default-src": ["'self'"]}

    @pytest.mark.asyncio
    async def test_finalize_runs_once(self, state, make_document):
        await _finalize(state, make_document, "<p></p>")
        assert state.phase is AuditPhase.finalized
        with pytest.raises(AuditError):
            await Finalizer(state, None).finalize("https://example.com/")


# ── Baseline 'none' ─────────────────────────────────────────────────────


class TestNoneBaseline:
    @pytest.mark.asyncio
    async def test_none_dropped_once_embed_adds_origin(self, state, make_document):
        result = await _finalize(state, make_document, '<object data="https://media.test/clip.swf"></object>')
        assert result.directives["object-src"] == ["https://media.test"]
        assert "'none'" in result.justifications["object-src"]

    @pytest.mark.asyncio
    async def test_none_dropped_alongside_data_payload(self, state, make_document):
        result = await _finalize(
            state, make_document,
            '<object></object><embed src="data:application/pdf;base64,AAAA">',
        )
        assert result.directives["object-src"] == ["data:"]

    @pytest.mark.asyncio
    async def test_none_kept_when_alone(self, state, make_document):
        result = await _finalize(state, make_document, "<object></object>", emit_defaults=True)
        assert result.directives["object-src"] == ["'none'"]
