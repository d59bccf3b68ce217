"""Static resource scanner: one synchronous pass over the document."""

from __future__ import annotations

import re

import structlog

from csp_auditor.policy.directives import DATA_URI, INLINE, NONE, Directive
from csp_auditor.policy.document import (
    Document,
    Element,
    ResourceKind,
    classify,
    resource_url,
)
from csp_auditor.policy.origin import is_data_url, resolve_origin
from csp_auditor.policy.state import (
    DataUriRecord,
    InlineKind,
    InlineResource,
    NonceRecord,
    PolicyState,
)

logger = structlog.get_logger()

# url(data:...) or url(http(s)://host/...) inside CSS text
_CSS_URL_RE = re.compile(r"""url\(\s*['"]?(data:|https?://[^)'"\s]+)""", re.IGNORECASE)
_CSS_DATA_URL_RE = re.compile(r"""url\(\s*['"]?data:""", re.IGNORECASE)

# External URL-bearing kinds: directive and data-URI record label
_EXTERNAL_TARGETS: dict[ResourceKind, tuple[Directive, str]] = {
    ResourceKind.external_script: (Directive.script_src, "script"),
    ResourceKind.stylesheet: (Directive.style_src, "style"),
    ResourceKind.image: (Directive.img_src, "img"),
    ResourceKind.font_preload: (Directive.font_src, "font"),
    ResourceKind.frame: (Directive.frame_src, "frame"),
}

NO_EMBED_DATA = "No object/embed data specified"


def truncate_snapshot(snapshot: str, limit: int) -> str:
    """Shorten an element snapshot for the justification index."""
    if len(snapshot) <= limit:
        return snapshot
    return snapshot[:limit] + "..."


class StaticScanner:
    """Classify every resource-bearing element and record what it requires."""

    def __init__(self, state: PolicyState, document: Document, *, snippet_length: int = 200) -> None:
        self._state = state
        self._document = document
        self._snippet_length = snippet_length

    def scan(self) -> int:
        """Walk the document once. Returns the number of classified elements."""
        count = 0
        for element in self._document.elements():
            kind = classify(element)
            if kind is None:
                continue
            count += 1
            if kind in _EXTERNAL_TARGETS:
                self._scan_external(element, kind)
            elif kind is ResourceKind.inline_script:
                self._scan_inline(element, InlineKind.script, Directive.script_src)
            elif kind is ResourceKind.inline_style:
                self._scan_inline(element, InlineKind.style, Directive.style_src)
                self._scan_css_urls(element)
            elif kind is ResourceKind.embed:
                self._scan_embed(element)
        logger.info("static_scan_complete", url=self._document.url, elements=count)
        return count

    def _resolve(self, url: str) -> str | None:
        return resolve_origin(url, self._document.url)

    def _scan_external(self, element: Element, kind: ResourceKind) -> None:
        directive, label = _EXTERNAL_TARGETS[kind]
        url = resource_url(element, kind)
        if is_data_url(url):
            self._state.record(directive, DATA_URI, element.snapshot)
            self._state.add_data_uri(DataUriRecord(kind=label, context=element.snapshot))
            return
        token = self._resolve(url)
        if token is None:
            return
        self._state.record(directive, token, element.snapshot)

    def _scan_inline(self, element: Element, kind: InlineKind, directive: Directive) -> None:
        snippet = truncate_snapshot(element.snapshot, self._snippet_length)
        self._state.add_inline(InlineResource(kind=kind, content=element.text, snapshot=snippet))
        self._state.record(directive, INLINE, snippet)

        if kind is InlineKind.style and _CSS_DATA_URL_RE.search(element.text):
            self._state.add_data_uri(DataUriRecord(kind="style-inline-data", context=snippet))

        nonce = element.attr("nonce")
        if nonce:
            self._state.add_nonce(NonceRecord(kind=kind, value=nonce, snapshot=snippet))

    def _scan_css_urls(self, element: Element) -> None:
        """Font sources referenced from style text via url(...)."""
        excerpt = element.text[: self._snippet_length]
        for match in _CSS_URL_RE.finditer(element.text):
            target = match.group(1)
            if target.lower() == DATA_URI:
                self._state.record(Directive.font_src, DATA_URI, excerpt + " (data URI)")
                self._state.add_data_uri(DataUriRecord(kind="font-inline-data-uri", context=excerpt))
                continue
            token = self._resolve(target)
            if token is None:
                continue
            self._state.record(Directive.font_src, token, excerpt)

    def _scan_embed(self, element: Element) -> None:
        payload = resource_url(element, ResourceKind.embed)
        if payload is None:
            self._state.record(Directive.object_src, NONE, NO_EMBED_DATA)
            return
        if is_data_url(payload):
            self._state.record(Directive.object_src, DATA_URI, element.snapshot)
            self._state.add_data_uri(DataUriRecord(kind="object", context=element.snapshot))
            return
        token = self._resolve(payload)
        if token is None:
            return
        self._state.record(Directive.object_src, token, element.snapshot)
