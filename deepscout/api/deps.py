from __future__ import annotations

from fastapi import Request

from deepscout.agents.orchestrator import ResearchOrchestrator
from deepscout.llm_client import complete_json
from deepscout.research_core.images.selector import config_from_settings
from deepscout.services.research_cache import ResearchCache
from deepscout.tools.content_extractor import PageContentService
from deepscout.tools.page_fetcher import fetch_page
from deepscout.tools.search_provider import WebSearchClient


def get_research_cache(request: Request) -> ResearchCache:
    """The process-wide research cache created at startup."""
    return request.app.state.research_cache


def get_orchestrator(request: Request) -> ResearchOrchestrator:
    state = request.app.state
    search_client: WebSearchClient = state.search_client
    page_content: PageContentService = state.page_content
    return ResearchOrchestrator(
        search=search_client.search,
        enrich=page_content.enrich,
        fetch_page=fetch_page,
        complete_json=complete_json,
        cache=get_research_cache(request),
        image_config=config_from_settings(),
    )
