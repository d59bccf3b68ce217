"""Load the document under audit from a URL or a local file."""

from __future__ import annotations

from pathlib import Path

import httpx
import structlog

from csp_auditor.policy.document import SoupDocument

logger = structlog.get_logger()


class FetchError(Exception):
    """The target page could not be loaded."""


async def fetch_document(
    url: str,
    *,
    timeout: float = 30.0,
    user_agent: str = "csp-auditor/0.1",
    transport: httpx.AsyncBaseTransport | None = None,
) -> SoupDocument:
    """GET ``url`` and parse it. Redirects are followed; the final URL becomes the document origin."""
    headers = {"User-Agent": user_agent, "Accept": "text/html,application/xhtml+xml"}
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=headers,
            transport=transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(f"{url} returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"could not fetch {url}: {exc}") from exc

    final_url = str(response.url)
    logger.info("document_fetched", url=final_url, status=response.status_code, bytes=len(response.content))
    return SoupDocument(response.text, final_url)


def load_document(path: str | Path, base_url: str | None = None) -> SoupDocument:
    """Parse a saved HTML file. ``base_url`` stands in for the page's real origin."""
    file_path = Path(path)
    try:
        html = file_path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FetchError(f"could not read {file_path}: {exc}") from exc
    url = base_url or file_path.resolve().as_uri()
    if base_url is None:
        logger.warning("no_base_url", path=str(file_path), hint="relative URLs will not resolve to 'self'")
    return SoupDocument(html, url)
