"""Audit run orchestration: scan, settle, finalize."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from csp_auditor.models.recommendation import PolicyRecommendation, ReportingEndpoint
from csp_auditor.policy.document import Document
from csp_auditor.policy.finalizer import Finalizer
from csp_auditor.policy.hasher import DigestProvider, default_digest_provider
from csp_auditor.policy.interceptor import RuntimeInterceptor, Surface
from csp_auditor.policy.scanner import StaticScanner
from csp_auditor.policy.state import AuditError, AuditPhase, PolicyState

logger = structlog.get_logger()

DEFAULT_SETTLE_MS = 6000

_UNSET: Any = object()


async def settle(delay_ms: int, cancel: asyncio.Event | None = None) -> bool:
    """Wait for late page activity. Returns False if cancelled early.

    The delay is a precision/latency trade-off: too short and late DOM
    mutations or network calls are missed, too long and the audit stalls.
    Nothing is polled while waiting.
    """
    delay = max(delay_ms, 0) / 1000
    if cancel is None:
        await asyncio.sleep(delay)
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return True
    return False


class PolicyAuditor:
    """Run one audit: Initialized -> Scanning -> Settling -> Finalized.

    Each auditor owns a fresh ``PolicyState``; concurrent audits need
    separate auditors.
    """

    def __init__(
        self,
        document: Document,
        *,
        host: Any = None,
        bindings: dict[str, Surface] | None = None,
        settle_ms: int = DEFAULT_SETTLE_MS,
        digest_provider: DigestProvider | None = _UNSET,
        emit_defaults: bool = False,
        snippet_length: int = 200,
        reporting: ReportingEndpoint | None = None,
    ) -> None:
        self.document = document
        self.state = PolicyState()
        self.interceptor = RuntimeInterceptor(self.state, document.url, bindings)
        self._host = host
        self._settle_ms = settle_ms
        self._provider = default_digest_provider() if digest_provider is _UNSET else digest_provider
        self._emit_defaults = emit_defaults
        self._snippet_length = snippet_length
        self._reporting = reporting

    @classmethod
    def from_settings(cls, document: Document, settings: Any, **kwargs: Any) -> PolicyAuditor:
        """Build an auditor from ``AuditSettings``; keyword arguments win."""
        options = {
            "settle_ms": settings.settle_ms,
            "emit_defaults": settings.emit_defaults,
            "snippet_length": settings.snippet_length,
            "reporting": ReportingEndpoint(
                report_uri=settings.report_uri,
                group=settings.report_group,
                max_age=settings.report_max_age,
                endpoint_url=settings.report_endpoint_url,
            ),
        }
        options.update(kwargs)
        return cls(document, **options)

    async def run(self, cancel: asyncio.Event | None = None) -> PolicyRecommendation:
        """Execute the audit and return the finalized recommendation.

        Instrumentation stays installed on the host afterwards; the host
        owns its lifetime.
        """
        if self.state.phase is not AuditPhase.initialized:
            raise AuditError("an auditor can only run once")
        with structlog.contextvars.bound_contextvars(audit_url=self.document.url):
            return await self._execute(cancel)

    async def _execute(self, cancel: asyncio.Event | None) -> PolicyRecommendation:
        log = logger.bind(url=self.document.url)
        log.info("audit_started", settle_ms=self._settle_ms)

        surfaces: list[str] = []
        if self._host is not None:
            surfaces = self.interceptor.install(self._host)

        self.state.advance(AuditPhase.scanning)
        StaticScanner(self.state, self.document, snippet_length=self._snippet_length).scan()

        self.state.advance(AuditPhase.settling)
        if surfaces:
            completed = await settle(self._settle_ms, cancel)
            if not completed:
                log.warning("settle_window_cancelled")
        else:
            # A static document cannot change while waiting
            log.info("settle_skipped", reason="no runtime surfaces instrumented")
            completed = True

        finalizer = Finalizer(
            self.state,
            self._provider,
            emit_defaults=self._emit_defaults,
            reporting=self._reporting,
        )
        return await finalizer.finalize(self.document.url, settle_completed=completed)


async def audit(document: Document, **kwargs: Any) -> PolicyRecommendation:
    """Convenience wrapper: audit ``document`` with a fresh auditor."""
    return await PolicyAuditor(document, **kwargs).run()
