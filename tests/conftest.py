"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest

from csp_auditor.policy.document import SoupDocument
from csp_auditor.policy.state import PolicyState
from tests.helpers.runtime import PAGE_URL, FakeWindow


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Start every test from model defaults with no CSP_AUDIT_* overrides."""
    for key in list(os.environ):
        if key.startswith("CSP_AUDIT_"):
            monkeypatch.delenv(key, raising=False)

    # Reset cached settings
    import csp_auditor.config.loader as loader
    loader._settings = None
    yield
    loader._settings = None


@pytest.fixture
def state():
    """Fresh policy state for one audit run."""
    return PolicyState()


@pytest.fixture
def make_document():
    """Build a SoupDocument served from PAGE_URL (or a given URL)."""
    def _make(html: str, url: str = PAGE_URL) -> SoupDocument:
        return SoupDocument(html, url)
    return _make


@pytest.fixture
def window():
    return FakeWindow()
