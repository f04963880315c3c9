from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from deepscout.config import settings

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


@dataclass(frozen=True, slots=True)
class FetchedPage:
    html: str
    final_url: str


def _is_html(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").lower()
    return any(kind in content_type for kind in HTML_CONTENT_TYPES)


async def fetch_page(
    url: str,
    timeout_seconds: float | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> FetchedPage | None:
    """GET one page. Non-2xx, non-HTML, timeouts and transport errors return ``None``."""
    timeout = settings.page_fetch_timeout_seconds if timeout_seconds is None else timeout_seconds
    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
    }
    try:
        if client is not None:
            response = await client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                response = await own_client.get(url, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.debug(f"fetch_page failed for {url}: {e}")
        return None

    if not response.is_success:
        logger.debug(f"fetch_page got HTTP {response.status_code} for {url}")
        return None
    if not _is_html(response):
        logger.debug(f"fetch_page rejected non-HTML content for {url}")
        return None
    return FetchedPage(html=response.text, final_url=str(response.url))
