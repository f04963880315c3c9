from __future__ import annotations

import time
from dataclasses import replace

from loguru import logger

from deepscout.config import settings
from deepscout.models.research import SearchResponse
from deepscout.services import logger as log_service
from deepscout.services.research_cache import TTLCache
from deepscout.tools import duckduckgo_search, tavily_search
from deepscout.tools.web_utils import normalize_query


class WebSearchClient:
    """Provider selection, DuckDuckGo fallback and a short-lived result cache.

    ``await client.search(query, k)`` is the search primitive handed to the
    orchestrator.
    """

    def __init__(self, cache: TTLCache[SearchResponse] | None = None):
        self.cache: TTLCache[SearchResponse] = (
            cache if cache is not None else TTLCache(settings.search_cache_ttl_seconds)
        )

    async def search(self, query: str, k: int = 5) -> SearchResponse:
        cache_key = f"{k}:{normalize_query(query)}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return replace(cached, results=list(cached.results[:k]), from_cache=True)

        t0 = time.monotonic()
        try:
            response = await self._search_uncached(query, k)
        except Exception as e:
            log_service.log_search_call(
                provider=settings.search_provider,
                query=query,
                k=k,
                duration_ms=int((time.monotonic() - t0) * 1000),
                error=str(e),
            )
            raise
        log_service.log_search_call(
            provider=response.provider,
            query=query,
            k=k,
            result_count=len(response.results),
            duration_ms=int((time.monotonic() - t0) * 1000),
            fallback_from=response.fallback_from,
        )
        if response.results:
            self.cache.set(cache_key, replace(response, results=list(response.results)))
        return response

    async def _search_uncached(self, query: str, k: int) -> SearchResponse:
        provider = settings.search_provider.lower().strip()
        use_fallback = settings.search_fallback_to_duckduckgo

        if provider == "duckduckgo":
            results = await duckduckgo_search.search(query, max_results=k)
            return SearchResponse(results=results, provider="duckduckgo")

        if provider != "tavily":
            raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")

        try:
            tavily = await tavily_search.search(query, max_results=k)
            if tavily.results or not use_fallback:
                return SearchResponse(results=tavily.results, provider="tavily", answer=tavily.answer)
            reason = "tavily returned zero results"
        except Exception as e:
            if not use_fallback:
                raise
            logger.warning(f"Tavily search failed, falling back to DuckDuckGo: {e}")
            reason = str(e)

        fallback_results = await duckduckgo_search.search(query, max_results=k)
        return SearchResponse(
            results=fallback_results,
            provider="duckduckgo",
            fallback_from="tavily",
            fallback_reason=reason,
        )
