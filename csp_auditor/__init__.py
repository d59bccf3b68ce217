"""
CSP Auditor - Content-Security-Policy recommendation from a rendered page
"""

__version__ = "0.1.0"

from csp_auditor.policy import PolicyAuditor, audit

__all__ = ['PolicyAuditor', 'audit']
