from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import httpx
from bs4 import BeautifulSoup

from deepscout.config import settings
from deepscout.models.research import Source

DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"


def _resolve_result_url(href: str) -> str:
    """DuckDuckGo wraps targets as ``//duckduckgo.com/l/?uddg=<url>``."""
    if not href:
        return ""
    params = parse_qs(urlsplit(href).query)
    target = params.get("uddg")
    if target:
        return target[0]
    return href if href.startswith("http") else ""


def parse_results_html(html: str, max_results: int) -> list[Source]:
    soup = BeautifulSoup(html, "html.parser")
    blocks = soup.select(".result.results_links")
    total = max(min(len(blocks), max_results), 1)
    results: list[Source] = []
    for block in blocks:
        if len(results) >= max_results:
            break
        link = block.select_one("a.result__a")
        if link is None:
            continue
        url = _resolve_result_url(str(link.get("href") or ""))
        title = link.get_text(" ", strip=True)
        snippet_node = block.select_one(".result__snippet")
        snippet = snippet_node.get_text(" ", strip=True) if snippet_node else ""
        if not url or not (title or snippet):
            continue
        # No relevance score in the HTML; use position.
        score = max(0.0, 1.0 - (len(results) / total))
        results.append(Source(title=title or url, url=url, snippet=snippet, score=score))
    return results


async def search(query: str, *, max_results: int = 5) -> list[Source]:
    """Search DuckDuckGo's HTML endpoint (no API key needed)."""
    async with httpx.AsyncClient(
        timeout=settings.search_timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    ) as client:
        response = await client.get(DUCKDUCKGO_HTML_URL, params={"q": query})
        response.raise_for_status()
        html = response.text
    return parse_results_html(html, max_results)
