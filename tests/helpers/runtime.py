"""Fake page runtime used by interceptor and auditor tests."""

from __future__ import annotations

PAGE_URL = "https://example.com/index.html"


class FakeSocket:
    def __init__(self, url, protocols=None):
        self.url = url
        self.protocols = protocols


class FakeWindow:
    """Stand-in for a page runtime exposing the instrumented entry points."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def open(self, method, url=None, *rest):
        self.calls.append(("open", method, url))
        return "opened"

    def fetch(self, url, options=None):
        self.calls.append(("fetch", url, options))
        return {"status": 200}

    def WebSocket(self, url, protocols=None):
        self.calls.append(("socket", url))
        return FakeSocket(url, protocols)

    def eval(self, source):
        self.calls.append(("eval", source))
        return 42

    def Function(self, *args):
        self.calls.append(("function", args))
        return lambda: "built"
