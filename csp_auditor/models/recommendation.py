"""Pydantic models for the finalized policy recommendation."""

from __future__ import annotations

from pydantic import BaseModel, Field

from csp_auditor.policy.csp_builder import build_csp, compact_json, policy_line, report_to_group

BEST_PRACTICES: tuple[str, ...] = (
    "Use \"object-src 'none'\" unless you absolutely need to embed objects.",
    "Use \"frame-ancestors\" to limit which sites can embed yours.",
    "Use \"base-uri 'self'\" to prevent <base> tag attacks.",
    "Use \"form-action 'self'\" to restrict where forms can post.",
    "Use \"report-uri\" or \"report-to\" to monitor violations.",
    "Prefer hashes or nonces over \"unsafe-inline\".",
    "Remove \"data:\" from directives unless explicitly needed.",
    "Minimize allowed domains for each directive.",
    "Regularly re-run CSP audits after code or dependency changes.",
)


class ReportingEndpoint(BaseModel):
    """Static violation-reporting declaration appended to every policy."""

    report_uri: str = "/report-csp-violation-endpoint"
    group: str = "csp-endpoint"
    max_age: int = 10886400
    endpoint_url: str = "/report-csp-violation-endpoint"

    def report_to(self) -> dict:
        return report_to_group(self.group, self.max_age, self.endpoint_url)


class DataUriUsage(BaseModel):
    kind: str
    context: str


class NonceUsage(BaseModel):
    kind: str
    value: str
    snapshot: str = ""


class PolicyRecommendation(BaseModel):
    """Point-in-time CSP recommendation with its justification trail."""

    url: str
    directives: dict[str, list[str]] = Field(default_factory=dict)
    all_directives: dict[str, list[str]] = Field(default_factory=dict)
    justifications: dict[str, dict[str, list[str]]] = Field(default_factory=dict)
    eval_detected: bool = False
    data_uris: list[DataUriUsage] = Field(default_factory=list)
    nonces: list[NonceUsage] = Field(default_factory=list)
    settle_completed: bool = True
    reporting: ReportingEndpoint = Field(default_factory=ReportingEndpoint)

    @property
    def data_uri_removable(self) -> bool:
        """True when no data: URI usage was observed."""
        return not self.data_uris

    def policy_lines(self) -> list[str]:
        """Directive lines followed by the reporting declaration."""
        lines = [policy_line(name, values) for name, values in self.directives.items()]
        lines.append(policy_line("report-uri", [self.reporting.report_uri]))
        lines.append(policy_line("report-to", [compact_json(self.reporting.report_to())]))
        return lines

    def header_value(self) -> str:
        """Content-Security-Policy header value (report-to names the group)."""
        directives = dict(self.directives)
        directives["report-uri"] = [self.reporting.report_uri]
        directives["report-to"] = [self.reporting.group]
        return build_csp(directives)

    def report_to_header(self) -> str:
        """Value for the companion Report-To header."""
        return compact_json(self.reporting.report_to())

    def advisories(self) -> list[str]:
        notes = []
        if self.eval_detected:
            notes.append(
                "eval()/Function() detected. Avoid usage, or include 'unsafe-eval' "
                "in CSP at your own risk (not recommended)."
            )
        else:
            notes.append("No eval()/Function() usage detected.")
        if self.data_uri_removable:
            notes.append("No data URIs detected. Safe to remove \"data:\" from CSP.")
        else:
            notes.append(f"{len(self.data_uris)} data URI usage(s) detected; keep \"data:\" where listed.")
        if self.nonces:
            notes.append("CSP nonce detected. Consider adopting a nonce-based CSP for inline scripts/styles.")
        if not self.settle_completed:
            notes.append("Settle window was cancelled; late page activity may be missing.")
        return notes
