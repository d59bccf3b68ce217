"""CSP policy inference engine."""

from csp_auditor.policy.auditor import PolicyAuditor, audit, settle
from csp_auditor.policy.directives import Directive
from csp_auditor.policy.document import Element, ResourceKind, SoupDocument
from csp_auditor.policy.finalizer import Finalizer
from csp_auditor.policy.interceptor import RuntimeInterceptor, Surface
from csp_auditor.policy.scanner import StaticScanner
from csp_auditor.policy.state import AuditError, PolicyState

__all__ = [
    "AuditError",
    "Directive",
    "Element",
    "Finalizer",
    "PolicyAuditor",
    "PolicyState",
    "ResourceKind",
    "RuntimeInterceptor",
    "SoupDocument",
    "StaticScanner",
    "Surface",
    "audit",
    "settle",
]
