"""Read-only document access and resource classification.

The scanner consumes any object satisfying the ``Document`` protocol.
``SoupDocument`` is the stock implementation over BeautifulSoup; a browser
bridge can provide its own by yielding ``Element`` values in document order.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Protocol

from bs4 import BeautifulSoup

RESOURCE_TAGS = ("script", "link", "style", "img", "iframe", "object", "embed")


class ResourceKind(str, enum.Enum):
    external_script = "external_script"
    inline_script = "inline_script"
    stylesheet = "stylesheet"
    inline_style = "inline_style"
    image = "image"
    font_preload = "font_preload"
    frame = "frame"
    embed = "embed"


# Attribute holding the resource URL for each URL-bearing kind.
_URL_ATTRIBUTE: dict[ResourceKind, str] = {
    ResourceKind.external_script: "src",
    ResourceKind.stylesheet: "href",
    ResourceKind.image: "src",
    ResourceKind.font_preload: "href",
    ResourceKind.frame: "src",
}


@dataclass(frozen=True)
class Element:
    """Snapshot of one resource-bearing element."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    snapshot: str = ""

    def attr(self, name: str) -> str | None:
        """Attribute value with surrounding whitespace removed; None if absent or blank."""
        value = self.attrs.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def rel(self) -> set[str]:
        return {token.lower() for token in (self.attrs.get("rel") or "").split()}


class Document(Protocol):
    """Read-only view over a rendered document."""

    url: str

    def elements(self) -> Iterator[Element]:
        """Yield resource-bearing elements in document order."""
        ...


def classify(element: Element) -> ResourceKind | None:
    """Map an element to its resource kind, or None if it loads nothing."""
    tag = element.tag.lower()
    if tag == "script":
        if element.attr("src"):
            return ResourceKind.external_script
        if element.text.strip():
            return ResourceKind.inline_script
        return None
    if tag == "style":
        return ResourceKind.inline_style if element.text.strip() else None
    if tag == "link":
        if not element.attr("href"):
            return None
        rel = element.rel
        if "stylesheet" in rel:
            return ResourceKind.stylesheet
        if "preload" in rel and (element.attr("as") or "").lower() == "font":
            return ResourceKind.font_preload
        return None
    if tag == "img":
        return ResourceKind.image if element.attr("src") else None
    if tag == "iframe":
        return ResourceKind.frame if element.attr("src") else None
    if tag in ("object", "embed"):
        return ResourceKind.embed
    return None


def resource_url(element: Element, kind: ResourceKind) -> str | None:
    """Return the URL an element of ``kind`` loads, if any."""
    if kind is ResourceKind.embed:
        # <object data=...> vs <embed src=...>
        name = "data" if element.tag.lower() == "object" else "src"
        return element.attr(name)
    attribute = _URL_ATTRIBUTE.get(kind)
    return element.attr(attribute) if attribute else None


def _attr_text(value: object) -> str:
    # bs4 returns multi-valued attributes (rel, class) as lists
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


class SoupDocument:
    """Document backed by a parsed HTML snapshot."""

    def __init__(self, html: str, url: str) -> None:
        self.url = url
        self._soup = BeautifulSoup(html, "html.parser")

    def elements(self) -> Iterator[Element]:
        for tag in self._soup.find_all(list(RESOURCE_TAGS)):
            yield Element(
                tag=tag.name,
                attrs={name: _attr_text(value) for name, value in tag.attrs.items()},
                text=tag.get_text() if tag.name in ("script", "style") else "",
                snapshot=str(tag),
            )
