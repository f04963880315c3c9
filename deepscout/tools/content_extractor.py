from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from dataclasses import replace

from bs4 import BeautifulSoup
from loguru import logger

from deepscout.config import settings
from deepscout.models.research import Source
from deepscout.services.concurrency import run_with_concurrency
from deepscout.services.research_cache import TTLCache
from deepscout.tools.page_fetcher import FetchedPage, fetch_page
from deepscout.tools.web_utils import canonicalize_url

NOISE_TAGS = ("script", "style", "nav", "header", "footer", "aside", "noscript", "form")

PageFetcher = Callable[[str, float], Awaitable[FetchedPage | None]]


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.split("\n")]
    deduped: list[str] = []
    for line in lines:
        if not line:
            continue
        if deduped and deduped[-1] == line:
            continue
        deduped.append(line)
    return "\n".join(deduped)


def _extract_with_trafilatura(raw_html: str) -> str:
    import trafilatura

    extracted = trafilatura.extract(raw_html, output_format="txt", include_tables=True)
    if not isinstance(extracted, str):
        return ""
    return _normalize_text(extracted)


def _extract_with_soup(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    for tag in soup.find_all(list(NOISE_TAGS)):
        tag.decompose()
    for row in soup.find_all("tr"):
        cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["td", "th"])]
        row.replace_with(" | ".join(cell for cell in cells if cell) + "\n")
    return _normalize_text(soup.get_text("\n"))


def extract_page_text(raw_html: str, *, max_chars: int | None = None) -> str:
    """Main readable text of an HTML page, truncated to ``max_chars``."""
    limit = settings.page_content_max_chars if max_chars is None else max_chars
    try:
        text = _extract_with_trafilatura(raw_html)
    except Exception as e:
        logger.debug(f"trafilatura extraction failed: {e}")
        text = ""
    if not text:
        text = _extract_with_soup(raw_html)
    return text[:limit] if limit > 0 else text


class PageContentService:
    """Fetches and extracts page text, with a short-lived per-URL cache."""

    def __init__(
        self,
        *,
        fetcher: PageFetcher = fetch_page,
        cache: TTLCache[str] | None = None,
        timeout_seconds: float | None = None,
        max_chars: int | None = None,
    ):
        self._fetcher = fetcher
        self.cache: TTLCache[str] = (
            cache if cache is not None else TTLCache(settings.page_content_cache_ttl_seconds)
        )
        self.timeout_seconds = (
            settings.page_fetch_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.max_chars = settings.page_content_max_chars if max_chars is None else max_chars

    async def fetch_content(self, url: str) -> str:
        key = canonicalize_url(url)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        page = await self._fetcher(url, self.timeout_seconds)
        if page is None:
            return ""
        text = await asyncio.to_thread(extract_page_text, page.html, max_chars=self.max_chars)
        if text:
            self.cache.set(key, text)
        return text

    async def enrich(self, sources: list[Source], concurrency: int = 3) -> list[Source]:
        """Fill missing ``page_content``; sources that fail keep their snippet only."""

        async def enrich_one(source: Source, _index: int) -> Source:
            if source.page_content:
                return source
            try:
                content = await self.fetch_content(source.url)
            except Exception as e:
                logger.warning(f"Enrichment failed for {source.url}: {e}")
                return source
            return replace(source, page_content=content) if content else source

        return await run_with_concurrency(sources, concurrency, enrich_one)
