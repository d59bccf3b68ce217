"""Post-settle finalization: inline hashes, nonces, pruning, emission."""

from __future__ import annotations

import structlog

from csp_auditor.models.recommendation import (
    DataUriUsage,
    NonceUsage,
    PolicyRecommendation,
    ReportingEndpoint,
)
from csp_auditor.policy.directives import BASELINE, INLINE, NONE, UNSAFE_INLINE, Directive, nonce_token
from csp_auditor.policy.hasher import DigestProvider, hash_source
from csp_auditor.policy.state import AuditPhase, InlineKind, PolicyState

logger = structlog.get_logger()

_INLINE_TARGETS: dict[InlineKind, tuple[Directive, str]] = {
    InlineKind.script: (Directive.script_src, "Inline script (hash shown)"),
    InlineKind.style: (Directive.style_src, "Inline style (hash shown)"),
}

# Used when no directive diverged from its baseline at all
CONSERVATIVE_BASELINE: dict[str, list[str]] = {
    Directive.default_src.value: [BASELINE[Directive.default_src]],
}


def emitted_directives(state: PolicyState, *, emit_defaults: bool = False) -> dict[str, list[str]]:
    """Apply the emission filter.

    A directive is emitted when it holds more than one token or its single
    token is not the baseline. If nothing qualifies, the conservative
    ``default-src 'self'`` baseline is returned on its own.
    """
    emitted: dict[str, list[str]] = {}
    for directive in Directive:
        if emit_defaults or state.has_diverged(directive):
            emitted[directive.value] = state.tokens(directive)
    if not emitted:
        return {name: list(values) for name, values in CONSERVATIVE_BASELINE.items()}
    return emitted


class Finalizer:
    """Turn collected evidence into the final recommendation. Runs once per audit."""

    def __init__(
        self,
        state: PolicyState,
        digest_provider: DigestProvider | None,
        *,
        emit_defaults: bool = False,
        reporting: ReportingEndpoint | None = None,
    ) -> None:
        self._state = state
        self._provider = digest_provider
        self._emit_defaults = emit_defaults
        self._reporting = reporting or ReportingEndpoint()

    async def finalize(self, url: str, *, settle_completed: bool = True) -> PolicyRecommendation:
        state = self._state
        if self._provider is None and state.inline_resources:
            logger.warning("digest_unavailable_using_unsafe_inline")

        for kind in InlineKind:
            if state.has_nonce(kind):
                logger.debug("inline_hashing_skipped", kind=kind.value, reason="nonce present")
                continue
            await self._hash_inline(kind)

        self._record_nonces()

        for directive in (Directive.script_src, Directive.style_src):
            state.prune(directive, INLINE)

        # 'none' is ignored by browsers once any other source is listed
        for directive in Directive:
            if BASELINE[directive] == NONE and len(state.tokens(directive)) > 1:
                state.prune(directive, NONE)

        state.advance(AuditPhase.finalized)
        recommendation = self._snapshot(url, settle_completed)
        logger.info(
            "audit_finalized",
            url=url,
            directives=list(recommendation.directives),
            eval_detected=recommendation.eval_detected,
            data_uris=len(recommendation.data_uris),
        )
        return recommendation

    async def _hash_inline(self, kind: InlineKind) -> None:
        directive, reason = _INLINE_TARGETS[kind]
        cache: dict[str, str] = {}
        for resource in self._state.inline_resources:
            if resource.kind is not kind:
                continue
            token = cache.get(resource.content)
            if token is None:
                token = await self._token_for(resource.content, kind)
                cache[resource.content] = token
            self._state.record(directive, token, reason)

    async def _token_for(self, content: str, kind: InlineKind) -> str:
        if self._provider is None:
            return UNSAFE_INLINE
        try:
            return await hash_source(content, self._provider)
        except Exception as exc:
            logger.warning("digest_failed", kind=kind.value, error=str(exc))
            return UNSAFE_INLINE

    def _record_nonces(self) -> None:
        seen: list[str] = []
        for nonce in self._state.nonces:
            if nonce.value not in seen:
                seen.append(nonce.value)
        for value in seen:
            token = nonce_token(value)
            self._state.record(Directive.script_src, token, "Script with nonce")
            self._state.record(Directive.style_src, token, "Style with nonce")

    def _snapshot(self, url: str, settle_completed: bool) -> PolicyRecommendation:
        state = self._state
        return PolicyRecommendation(
            url=url,
            directives=emitted_directives(state, emit_defaults=self._emit_defaults),
            all_directives={d.value: state.tokens(d) for d in Directive},
            justifications={d.value: state.justifications(d) for d in Directive},
            eval_detected=state.eval_detected,
            data_uris=[DataUriUsage(kind=r.kind, context=r.context) for r in state.data_uris],
            nonces=[
                NonceUsage(kind=n.kind.value, value=n.value, snapshot=n.snapshot)
                for n in state.nonces
            ],
            settle_completed=settle_completed,
            reporting=self._reporting,
        )
