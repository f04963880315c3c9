from __future__ import annotations

import asyncio
import json as _json

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from deepscout.agents.orchestrator import ResearchOrchestrator
from deepscout.api.deps import get_orchestrator
from deepscout.models.research import Source
from deepscout.models.schemas import ResearchRequest
from deepscout.services import logger as log_service
from deepscout.services import streaming

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("")
async def stream_research(
    body: ResearchRequest,
    request: Request,
    orchestrator: ResearchOrchestrator = Depends(get_orchestrator),
):
    """SSE stream of research progress: search, planning, ranking, images, complete."""
    initial_sources = [
        Source(
            title=item.title,
            url=item.url,
            snippet=item.snippet,
            page_content=item.page_content,
            score=item.score,
        )
        for item in body.sources
    ]
    cancel_event = asyncio.Event()

    async def event_generator():
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            mode=body.mode,
            query=body.query[:100],
            initial_sources=len(initial_sources),
        )
        try:
            async for event in orchestrator.research(
                body.query,
                body.mode,
                initial_sources=initial_sources or None,
                cancel_event=cancel_event,
            ):
                yield {
                    "event": event.event.value,
                    "data": _json.dumps(event.payload(), default=str),
                }
                if await request.is_disconnected():
                    cancel_event.set()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in research stream",
                error=str(e),
                query=body.query[:100],
            )
            error_event = streaming.error("Research stream failed unexpectedly.")
            yield {
                "event": error_event.event.value,
                "data": _json.dumps(error_event.payload()),
            }

    return EventSourceResponse(event_generator())
