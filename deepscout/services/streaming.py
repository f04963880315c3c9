from __future__ import annotations

from typing import Any

from deepscout.models.events import EventType, SSEEvent
from deepscout.models.research import RankedSource, ResearchBundle, ResearchPlan, SelectedImage


def search_completed(source_count: int, *, cached: bool = False, **kwargs: Any) -> SSEEvent:
    """Emit once the source pool has been gathered."""
    return SSEEvent(
        event=EventType.SEARCH,
        message="Served from cache" if cached else f"Found {source_count} sources",
        data={"source_count": source_count, "cached": cached, **kwargs},
    )


def planning_completed(plan: ResearchPlan, *, stage: str, cached: bool = False) -> SSEEvent:
    return SSEEvent(
        event=EventType.PLANNING,
        message=f"Planned {len(plan.follow_up_queries)} follow-up searches",
        data={"plan": plan.model_dump(), "stage": stage, "cached": cached},
    )


def ranking_completed(
    ranked: list[RankedSource], *, cached: bool = False, **kwargs: Any
) -> SSEEvent:
    return SSEEvent(
        event=EventType.RANKING,
        message=f"Ranked {len(ranked)} sources",
        data={
            "sources": [source.to_dict() for source in ranked],
            "cached": cached,
            **kwargs,
        },
    )


def images_selected(images: list[SelectedImage], *, cached: bool = False) -> SSEEvent:
    return SSEEvent(
        event=EventType.IMAGES,
        message=f"Selected {len(images)} images",
        data={"images": [image.to_dict() for image in images], "cached": cached},
    )


def research_complete(bundle: ResearchBundle) -> SSEEvent:
    """Emit the final bundle."""
    return SSEEvent(
        event=EventType.COMPLETE,
        message="Research complete",
        data={"bundle": bundle.to_dict()},
    )


def error(message: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.ERROR, message=message, data={"error": message, **kwargs})
