from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tavily import AsyncTavilyClient

from deepscout.config import settings
from deepscout.models.research import Source
from deepscout.tools.web_utils import fold_text

RAW_CONTENT_MAX_CHARS = 6000

REALTIME_KEYWORDS = ("hoy", "today", "ahora", "now", "ultimo", "ultima", "last", "reciente", "recent")
SPORTS_KEYWORDS = (
    "resultado", "resultados", "clasificacion", "jornada", "partido", "marcador",
    "gol", "goles", "fc barcelona", "barca", "real madrid", "liga", "champions", "copa",
)
NEWS_KEYWORDS = ("noticias", "noticia", "ayer", "ultima hora", "actualidad", "fichaje", "elecciones", "breaking")
FINANCE_KEYWORDS = (
    "cotizacion", "bolsa", "acciones", "ibex", "nasdaq", "dow jones", "crypto",
    "bitcoin", "precio acciones", "stock price",
)
SPAIN_KEYWORDS = ("liga", "laliga", "espana", "spanish", "madrid", "barcelona", "barca", "gobierno espanol", "ibex")


@dataclass
class TavilyResponse:
    results: list[Source] = field(default_factory=list)
    answer: str | None = None


def detect_query_params(query: str) -> dict[str, str]:
    """Pick Tavily topic/time range/country from query keywords."""
    q = fold_text(query)

    is_realtime = any(kw in q for kw in REALTIME_KEYWORDS)
    is_sports = any(kw in q for kw in SPORTS_KEYWORDS)
    is_news = any(kw in q for kw in NEWS_KEYWORDS)
    is_finance = any(kw in q for kw in FINANCE_KEYWORDS)

    params: dict[str, str] = {
        "topic": "finance" if is_finance else "news" if (is_news or is_sports) else "general",
    }
    if is_realtime or is_sports:
        params["time_range"] = "day"
    elif is_news:
        params["time_range"] = "week"
    if any(kw in q for kw in SPAIN_KEYWORDS):
        params["country"] = "spain"
    return params


def _to_source(item: dict[str, Any]) -> Source:
    raw_content = item.get("raw_content")
    page_content = raw_content[:RAW_CONTENT_MAX_CHARS] if isinstance(raw_content, str) and raw_content else None
    return Source(
        title=item.get("title", "") or "",
        url=item.get("url", "") or "",
        snippet=item.get("content", "") or "",
        page_content=page_content,
        score=float(item.get("score", 0.0) or 0.0),
    )


async def search(
    query: str,
    *,
    max_results: int = 5,
    search_depth: str = "advanced",
    include_raw_content: bool = True,
) -> TavilyResponse:
    """Execute a Tavily web search and return normalized sources plus Tavily's answer."""
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")

    client = AsyncTavilyClient(api_key=settings.tavily_api_key)
    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "include_raw_content": include_raw_content,
        "include_answer": True,
        **detect_query_params(query),
    }
    response = await client.search(**kwargs)

    answer = response.get("answer")
    return TavilyResponse(
        results=[_to_source(r) for r in response.get("results", [])[:max_results]],
        answer=answer if isinstance(answer, str) and answer.strip() else None,
    )
