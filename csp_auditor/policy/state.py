"""Per-audit policy state: directive token sets plus the justification index."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass

import structlog

from csp_auditor.policy.directives import BASELINE, Directive

logger = structlog.get_logger()


class AuditError(Exception):
    """Raised when an audit run is driven out of order."""


class AuditPhase(str, enum.Enum):
    initialized = "initialized"
    scanning = "scanning"
    settling = "settling"
    finalized = "finalized"


_PHASE_ORDER = list(AuditPhase)


class InlineKind(str, enum.Enum):
    script = "script"
    style = "style"


@dataclass(frozen=True, slots=True)
class InlineResource:
    """Inline script/style body awaiting hash conversion."""

    kind: InlineKind
    content: str
    snapshot: str = ""


@dataclass(frozen=True, slots=True)
class NonceRecord:
    """A nonce attribute observed on an inline element."""

    kind: InlineKind
    value: str
    snapshot: str = ""


@dataclass(frozen=True, slots=True)
class DataUriRecord:
    """Observed data: URI usage, kept for the "can data: be removed" verdict."""

    kind: str
    context: str


class PolicyState:
    """Accumulates the policy for one audit run.

    Owned by a single run and passed explicitly to the scanner, the
    interceptor and the finalizer. All token-set mutation goes through
    ``record`` under one lock, so interceptor wrappers called from other
    threads never observe a half-updated directive.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # dict preserves insertion order and gives O(1) dedup
        self._tokens: dict[Directive, dict[str, None]] = {
            directive: {baseline: None} for directive, baseline in BASELINE.items()
        }
        self._reasons: dict[Directive, dict[str, list[str]]] = {
            directive: {} for directive in Directive
        }
        self._inline: list[InlineResource] = []
        self._nonces: list[NonceRecord] = []
        self._data_uris: list[DataUriRecord] = []
        self._eval_detected = False
        self._phase = AuditPhase.initialized

    # ── Mutation ────────────────────────────────────────────────────────

    def record(self, directive: Directive, token: str, justification: str) -> None:
        """Add ``token`` to ``directive`` (deduplicated) and append the justification."""
        directive = Directive(directive)
        with self._lock:
            self._tokens[directive].setdefault(token, None)
            self._reasons[directive].setdefault(token, []).append(justification)

    def prune(self, directive: Directive, token: str) -> bool:
        """Drop a placeholder token from the set, keeping its justifications.

        The last remaining token is never removed.
        """
        directive = Directive(directive)
        with self._lock:
            tokens = self._tokens[directive]
            if token not in tokens or len(tokens) == 1:
                return False
            del tokens[token]
            return True

    def add_inline(self, resource: InlineResource) -> None:
        with self._lock:
            self._inline.append(resource)

    def add_nonce(self, nonce: NonceRecord) -> None:
        with self._lock:
            self._nonces.append(nonce)

    def add_data_uri(self, record: DataUriRecord) -> None:
        with self._lock:
            self._data_uris.append(record)

    def mark_eval(self) -> None:
        """Set the eval flag. It never resets within a run."""
        if not self._eval_detected:
            logger.info("dynamic_evaluation_detected")
        self._eval_detected = True

    # ── Lifecycle ───────────────────────────────────────────────────────

    @property
    def phase(self) -> AuditPhase:
        return self._phase

    def advance(self, phase: AuditPhase) -> None:
        """Move to the next phase; skipping ahead is allowed, going back is not."""
        if _PHASE_ORDER.index(phase) <= _PHASE_ORDER.index(self._phase):
            raise AuditError(f"cannot move from {self._phase.value} to {phase.value}")
        logger.debug("audit_phase", previous=self._phase.value, phase=phase.value)
        self._phase = phase

    # ── Read access ─────────────────────────────────────────────────────

    def tokens(self, directive: Directive) -> list[str]:
        with self._lock:
            return list(self._tokens[Directive(directive)])

    def justifications(self, directive: Directive) -> dict[str, list[str]]:
        with self._lock:
            return {
                token: list(reasons)
                for token, reasons in self._reasons[Directive(directive)].items()
            }

    def has_diverged(self, directive: Directive) -> bool:
        """True once the directive holds anything besides its baseline token."""
        tokens = self.tokens(directive)
        return len(tokens) > 1 or tokens[0] != BASELINE[Directive(directive)]

    @property
    def inline_resources(self) -> list[InlineResource]:
        with self._lock:
            return list(self._inline)

    @property
    def nonces(self) -> list[NonceRecord]:
        with self._lock:
            return list(self._nonces)

    @property
    def data_uris(self) -> list[DataUriRecord]:
        with self._lock:
            return list(self._data_uris)

    @property
    def eval_detected(self) -> bool:
        return self._eval_detected

    def has_nonce(self, kind: InlineKind) -> bool:
        return any(n.kind is kind for n in self.nonces)
