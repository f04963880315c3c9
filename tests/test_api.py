"""Tests for API routes."""
import json

import pytest
from fastapi.testclient import TestClient

from deepscout.agents.orchestrator import ResearchOrchestrator
from deepscout.agents.query_planner import QueryPlanner
from deepscout.api.deps import get_orchestrator
from deepscout.main import app
from deepscout.models.research import SearchResponse, Source
from deepscout.services.research_cache import ResearchCache


async def fake_search(query: str, k: int) -> SearchResponse:
    slug = query.replace(" ", "-")
    return SearchResponse(
        results=[
            Source(
                title=f"{query} {i}",
                url=f"https://{slug}-{i}.example/",
                snippet="solar data",
                page_content="text",
                score=0.5,
            )
            for i in range(2)
        ],
        provider="fake",
    )


async def fake_enrich(sources, concurrency):
    return sources


async def fake_fetch(url, timeout):
    return None


async def fake_complete_json(system_prompt: str, user_prompt: str) -> str:
    return json.dumps({"follow_up_queries": ["solar follow up"]})


def _fake_orchestrator() -> ResearchOrchestrator:
    return ResearchOrchestrator(
        search=fake_search,
        enrich=fake_enrich,
        fetch_page=fake_fetch,
        planner=QueryPlanner(fake_complete_json),
        cache=ResearchCache(),
    )


@pytest.fixture
def client():
    app.dependency_overrides[get_orchestrator] = _fake_orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "deepscout"


def test_lifespan_creates_shared_research_cache(client):
    assert isinstance(app.state.research_cache, ResearchCache)


def test_research_rejects_empty_query(client):
    response = client.post("/api/research", json={"query": ""})
    assert response.status_code == 422


def test_research_rejects_unknown_mode(client):
    response = client.post("/api/research", json={"query": "solar", "mode": "deep"})
    assert response.status_code == 422


def test_research_streams_events_in_order(client):
    response = client.post("/api/research", json={"query": "solar outlook", "mode": "quick"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    body = response.text
    positions = [
        body.index(f"event: {kind}") for kind in ("search", "planning", "ranking", "images", "complete")
    ]
    assert positions == sorted(positions)
    assert "event: error" not in body
