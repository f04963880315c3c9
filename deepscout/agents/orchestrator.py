from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any
from uuid import uuid4

from loguru import logger

from deepscout.agents.query_planner import MAX_SEED_SOURCES, CompleteJSON, PlanOutcome, QueryPlanner
from deepscout.models.events import SSEEvent
from deepscout.models.research import (
    RankedSource,
    ResearchBundle,
    ResearchMode,
    ResearchPlan,
    SearchResponse,
    SelectedImage,
    Source,
)
from deepscout.research_core.images.selector import ImageScoringConfig, ImageSelector, PageFetcher
from deepscout.research_core.ranking import rank_sources
from deepscout.services import logger as log_service
from deepscout.services import streaming
from deepscout.services.concurrency import run_with_concurrency
from deepscout.services.research_cache import ResearchCache

SearchFn = Callable[[str, int], Awaitable[SearchResponse]]
EnrichFn = Callable[[list[Source], int], Awaitable[list[Source]]]


class ResearchState(str, Enum):
    CACHE_HIT = "cache_hit"
    WARMUP = "warmup"
    PLANNING = "planning"
    FOLLOWUP_SEARCH = "followup_search"
    RANKING = "ranking"
    IMAGE_SELECTION = "image_selection"
    DONE = "done"


@dataclass(frozen=True)
class ModeProfile:
    warmup_results: int
    follow_up_queries: int
    results_per_follow_up: int
    follow_up_concurrency: int
    enrich_top_n: int
    max_sources: int


MODE_PROFILES: dict[str, ModeProfile] = {
    "quick": ModeProfile(
        warmup_results=10,
        follow_up_queries=4,
        results_per_follow_up=5,
        follow_up_concurrency=3,
        enrich_top_n=3,
        max_sources=16,
    ),
    "exhaustive": ModeProfile(
        warmup_results=14,
        follow_up_queries=7,
        results_per_follow_up=8,
        follow_up_concurrency=4,
        enrich_top_n=3,
        max_sources=24,
    ),
}


def get_profile(mode: str) -> ModeProfile:
    try:
        return MODE_PROFILES[mode]
    except KeyError:
        raise ValueError(f"Unsupported research mode: {mode}") from None


@dataclass
class _Run:
    """Mutable state of one research run."""

    run_id: str
    query: str
    mode: ResearchMode
    profile: ModeProfile
    cancel_event: asyncio.Event | None
    started: float
    bundle: ResearchBundle
    pool: list[Source] = field(default_factory=list)
    telemetry: dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class ResearchOrchestrator:
    """Runs one query through search, planning, ranking and image selection.

    States: WARMUP -> PLANNING -> FOLLOWUP_SEARCH -> RANKING -> IMAGE_SELECTION -> DONE,
    or CACHE_HIT -> DONE. Every collaborator that touches the network is injected.

    ``research()`` yields one progress event per kind (search, planning, ranking,
    images, complete) in that order; ``run()`` drains it and returns the bundle.
    """

    def __init__(
        self,
        *,
        search: SearchFn,
        enrich: EnrichFn,
        fetch_page: PageFetcher,
        cache: ResearchCache,
        complete_json: CompleteJSON | None = None,
        planner: QueryPlanner | None = None,
        image_config: ImageScoringConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        current_year: int | None = None,
    ):
        if planner is None and complete_json is None:
            raise ValueError("ResearchOrchestrator needs a planner or a complete_json callable")
        self._search = search
        self._enrich = enrich
        self.cache = cache
        self.planner = planner or QueryPlanner(complete_json)  # type: ignore[arg-type]
        self.images = ImageSelector(fetch_page, image_config)
        self._clock = clock
        self.current_year = current_year

    def _elapsed_ms(self, since: float) -> int:
        return int((self._clock() - since) * 1000)

    def _stop_if_cancelled(self, run: _Run, state: ResearchState) -> bool:
        if not run.cancelled:
            return False
        run.telemetry["cancelled"] = True
        run.telemetry["cancelled_at"] = state.value
        log_service.log_research_step(run.run_id, state.value, "cancelled")
        return True

    async def _search_safe(self, query: str, k: int) -> SearchResponse:
        try:
            return await self._search(query, k)
        except Exception as e:
            logger.warning(f"Search failed for {query!r}: {e}")
            return SearchResponse()

    async def _enrich_top(self, sources: list[Source], top_n: int) -> list[Source]:
        """Enrich the first ``top_n`` sources when any of them lacks page content."""
        head = sources[:top_n]
        if not head or all(source.page_content for source in head):
            return sources
        try:
            enriched = await self._enrich(list(head), top_n)
        except Exception as e:
            logger.warning(f"Enrichment failed: {e}")
            return sources
        return list(enriched) + sources[top_n:]

    async def _warmup(self, run: _Run, initial_sources: Sequence[Source] | None) -> None:
        t0 = self._clock()
        if initial_sources:
            run.pool = list(initial_sources)
            run.telemetry["warmup_skipped"] = True
        else:
            response = await self._search_safe(run.query, run.profile.warmup_results)
            run.bundle.answer_summary = response.answer or None
            run.pool = await self._enrich_top(list(response.results), run.profile.enrich_top_n)
            run.telemetry["warmup_skipped"] = False
            if response.provider:
                run.telemetry["search_provider"] = response.provider
        run.telemetry["warmup_results"] = len(run.pool)
        run.telemetry["warmup_ms"] = self._elapsed_ms(t0)
        log_service.log_research_step(
            run.run_id, ResearchState.WARMUP.value, "completed", {"results": len(run.pool)}
        )

    async def _plan(self, run: _Run) -> PlanOutcome:
        t0 = self._clock()
        outcome = await self.planner.plan(run.query, run.pool[:MAX_SEED_SOURCES])
        run.bundle.plan = outcome.plan
        run.telemetry["planner_stage"] = outcome.stage
        run.telemetry["planning_ms"] = self._elapsed_ms(t0)
        log_service.log_research_step(
            run.run_id,
            ResearchState.PLANNING.value,
            "completed",
            {"stage": outcome.stage, "follow_ups": len(outcome.plan.follow_up_queries)},
        )
        return outcome

    async def _follow_up(self, run: _Run, plan: ResearchPlan) -> None:
        t0 = self._clock()
        profile = run.profile
        queries = plan.follow_up_queries[: profile.follow_up_queries]
        failures = 0

        async def search_one(follow_up: str, _index: int) -> SearchResponse:
            nonlocal failures
            try:
                response = await self._search(follow_up, profile.results_per_follow_up)
                results = await self._enrich_top(list(response.results), profile.enrich_top_n)
            except Exception as e:
                failures += 1
                logger.warning(f"Follow-up search failed for {follow_up!r}: {e}")
                return SearchResponse()
            return replace(response, results=results)

        responses = await run_with_concurrency(queries, profile.follow_up_concurrency, search_one)
        for response in responses:
            run.pool.extend(response.results)
            if not run.bundle.answer_summary and response.answer:
                run.bundle.answer_summary = response.answer

        run.telemetry["follow_up_queries"] = len(queries)
        run.telemetry["follow_up_failures"] = failures
        run.telemetry["pool_size"] = len(run.pool)
        run.telemetry["follow_up_ms"] = self._elapsed_ms(t0)
        log_service.log_research_step(
            run.run_id,
            ResearchState.FOLLOWUP_SEARCH.value,
            "completed",
            {"queries": len(queries), "failures": failures, "pool": len(run.pool)},
        )

    def _rank(self, run: _Run) -> list[RankedSource]:
        t0 = self._clock()
        ranked = rank_sources(
            run.query,
            run.pool,
            run.profile.max_sources,
            current_year=self.current_year,
        )
        run.bundle.sources = ranked
        run.telemetry["ranked_count"] = len(ranked)
        run.telemetry["ranking_ms"] = self._elapsed_ms(t0)
        return ranked

    async def _select_images(self, run: _Run) -> list[SelectedImage]:
        t0 = self._clock()
        try:
            images = await self.images.select(run.query, run.bundle.sources)
        except Exception as e:
            logger.warning(f"Image selection failed: {e}")
            images = []
        run.bundle.images = images
        run.telemetry["image_count"] = len(images)
        run.telemetry["image_fallbacks"] = sum(1 for image in images if image.fallback)
        run.telemetry["images_ms"] = self._elapsed_ms(t0)
        return images

    def _finish(self, run: _Run) -> None:
        run.telemetry["total_ms"] = self._elapsed_ms(run.started)
        run.bundle.telemetry = dict(run.telemetry)
        log_service.log_research_step(run.run_id, ResearchState.DONE.value, "completed")
        log_service.log_event(
            "research_telemetry",
            f"Research run {run.run_id} finished",
            run_id=run.run_id,
            query=run.query,
            **run.telemetry,
        )

    async def _steps(
        self, run: _Run, initial_sources: Sequence[Source] | None
    ) -> AsyncGenerator[SSEEvent, None]:
        if self._stop_if_cancelled(run, ResearchState.WARMUP):
            return

        entry = self.cache.get(run.mode, run.query)
        if entry is not None:
            run.telemetry["cache_hit"] = True
            run.bundle.cached = True
            run.bundle.sources = list(entry.ranked_sources)
            run.bundle.plan = entry.plan.model_copy(deep=True)
            run.bundle.answer_summary = entry.answer_summary
            run.telemetry["ranked_count"] = len(entry.ranked_sources)
            run.telemetry["planner_stage"] = "cached"
            log_service.log_research_step(run.run_id, ResearchState.CACHE_HIT.value, "completed")
            yield streaming.search_completed(len(entry.sources), cached=True)
            yield streaming.planning_completed(run.bundle.plan, stage="cached", cached=True)
            yield streaming.ranking_completed(run.bundle.sources, cached=True)
            yield streaming.images_selected([], cached=True)
            self._finish(run)
            yield streaming.research_complete(run.bundle)
            return

        run.telemetry["cache_hit"] = False
        await self._warmup(run, initial_sources)
        if self._stop_if_cancelled(run, ResearchState.WARMUP):
            return
        yield streaming.search_completed(
            len(run.pool), provider=run.telemetry.get("search_provider", "")
        )

        outcome = await self._plan(run)
        if self._stop_if_cancelled(run, ResearchState.PLANNING):
            return
        yield streaming.planning_completed(outcome.plan, stage=outcome.stage)

        await self._follow_up(run, outcome.plan)
        if self._stop_if_cancelled(run, ResearchState.FOLLOWUP_SEARCH):
            return

        ranked = self._rank(run)
        if self._stop_if_cancelled(run, ResearchState.RANKING):
            return
        if ranked:
            self.cache.put(
                run.mode,
                run.query,
                sources=run.pool,
                ranked_sources=ranked,
                plan=run.bundle.plan,
                answer_summary=run.bundle.answer_summary,
            )
        yield streaming.ranking_completed(ranked, pool_size=len(run.pool))

        images = await self._select_images(run)
        if self._stop_if_cancelled(run, ResearchState.IMAGE_SELECTION):
            return
        yield streaming.images_selected(images)

        self._finish(run)
        yield streaming.research_complete(run.bundle)

    def _new_run(
        self, query: str, mode: ResearchMode, cancel_event: asyncio.Event | None
    ) -> _Run:
        profile = get_profile(mode)
        return _Run(
            run_id=uuid4().hex[:12],
            query=query,
            mode=mode,
            profile=profile,
            cancel_event=cancel_event,
            started=self._clock(),
            bundle=ResearchBundle(query=query, mode=mode),
            telemetry={"mode": mode},
        )

    async def research(
        self,
        query: str,
        mode: ResearchMode = "quick",
        initial_sources: Sequence[Source] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        """Yield progress events for one run. Raises ``ValueError`` for an unknown mode."""
        run = self._new_run(query, mode, cancel_event)
        async for event in self._steps(run, initial_sources):
            yield event

    async def run(
        self,
        query: str,
        mode: ResearchMode = "quick",
        initial_sources: Sequence[Source] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ResearchBundle:
        """Run to completion and return the bundle (partial if cancelled)."""
        run = self._new_run(query, mode, cancel_event)
        async for _event in self._steps(run, initial_sources):
            pass
        if run.cancelled:
            run.bundle.telemetry = dict(run.telemetry)
        return run.bundle
