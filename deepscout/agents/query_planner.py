from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from loguru import logger

from deepscout.models.research import ResearchPlan, Source
from deepscout.services.prompt_store import render_prompt
from deepscout.tools.web_utils import normalize_query

MAX_SUB_QUESTIONS = 8
MAX_FOLLOW_UPS = 7
MAX_CLARIFYING = 3
MAX_SEED_SOURCES = 6
SEED_SNIPPET_CHARS = 280

FOLLOW_UP_PREFIX = "recent data and evidence about "

PlanStage = Literal["strict", "extracted", "fallback"]
CompleteJSON = Callable[[str, str], Awaitable[str]]

_DECODER = json.JSONDecoder()

_FIELD_ALIASES = {
    "sub_questions": ("sub_questions", "subQuestions"),
    "follow_up_queries": ("follow_up_queries", "followUpQueries", "queries"),
    "clarifying_questions": ("clarifying_questions", "clarifyingQuestions"),
}


@dataclass(frozen=True)
class PlanOutcome:
    plan: ResearchPlan
    stage: PlanStage
    reason: str | None = None


def _normalize_list(values: Any, cap: int) -> list[str]:
    """Strings only, trimmed, unique after case/diacritic folding, at most ``cap``."""
    if not isinstance(values, list):
        return []
    seen: set[str] = set()
    items: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        text = " ".join(value.split())
        key = normalize_query(text)
        if not key or key in seen:
            continue
        seen.add(key)
        items.append(text)
        if len(items) >= cap:
            break
    return items


def _field(payload: dict[str, Any], name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if alias in payload:
            return payload[alias]
    return None


def coerce_plan(parsed: Any) -> ResearchPlan | None:
    """Build a plan from decoded JSON; a bare array is read as sub-questions."""
    if isinstance(parsed, list):
        return ResearchPlan(sub_questions=_normalize_list(parsed, MAX_SUB_QUESTIONS))
    if not isinstance(parsed, dict):
        return None
    return ResearchPlan(
        sub_questions=_normalize_list(_field(parsed, "sub_questions"), MAX_SUB_QUESTIONS),
        follow_up_queries=_normalize_list(_field(parsed, "follow_up_queries"), MAX_FOLLOW_UPS),
        clarifying_questions=_normalize_list(
            _field(parsed, "clarifying_questions"), MAX_CLARIFYING
        ),
    )


def _strip_fences(text: str) -> str:
    if "```" not in text:
        return text
    parts = text.split("```")
    if len(parts) < 3:
        return text
    body = parts[1]
    if body.lower().startswith("json"):
        body = body[4:]
    return body.strip()


def _embedded_values(text: str) -> Iterator[Any]:
    """JSON objects and arrays embedded in ``text``, searched inside the code fence if any."""
    body = _strip_fences(text)
    for idx, char in enumerate(body):
        if char not in "{[":
            continue
        try:
            value, _end = _DECODER.raw_decode(body, idx)
        except json.JSONDecodeError:
            continue
        yield value


def parse_plan_response(text: str) -> tuple[ResearchPlan, PlanStage]:
    """Strict parse, then extraction of embedded JSON, then an empty plan. Never raises.

    During extraction the first value that yields a non-empty plan wins; a value that
    only coerces to an empty plan is kept as the answer if nothing better follows.
    """
    raw = (text or "").strip()
    if not raw:
        return ResearchPlan(), "fallback"

    try:
        plan = coerce_plan(json.loads(raw))
    except json.JSONDecodeError:
        plan = None
    if plan is not None:
        return plan, "strict"

    first_empty: ResearchPlan | None = None
    for value in _embedded_values(raw):
        plan = coerce_plan(value)
        if plan is None:
            continue
        if not plan.is_empty:
            return plan, "extracted"
        if first_empty is None:
            first_empty = plan
    if first_empty is not None:
        return first_empty, "extracted"

    return ResearchPlan(), "fallback"


def fill_follow_ups(plan: ResearchPlan, query: str, year: int) -> ResearchPlan:
    """Guarantee at least one follow-up query."""
    if plan.follow_up_queries:
        return plan
    follow_ups = _normalize_list(
        [f"{FOLLOW_UP_PREFIX}{question}" for question in plan.sub_questions],
        MAX_FOLLOW_UPS,
    )
    if not follow_ups:
        base = " ".join(query.split())
        follow_ups = _normalize_list(
            [base, f"{base} latest data {year}", f"{base} analysis and evidence"],
            MAX_FOLLOW_UPS,
        )
    return plan.model_copy(update={"follow_up_queries": follow_ups})


def format_seed_sources(sources: Iterable[Source], limit: int = MAX_SEED_SOURCES) -> str:
    lines: list[str] = []
    for idx, source in enumerate(sources):
        if idx >= limit:
            break
        snippet = " ".join((source.snippet or "").split())[:SEED_SNIPPET_CHARS]
        lines.append(f"[{idx + 1}] {source.title}\n{source.url}\n{snippet}".rstrip())
    return "\n\n".join(lines) if lines else "(no sources yet)"


class QueryPlanner:
    """Turns a query into sub-questions and follow-up searches with one LLM call."""

    def __init__(
        self,
        complete_json: CompleteJSON,
        *,
        today: Callable[[], date] = date.today,
    ):
        self._complete_json = complete_json
        self._today = today

    def build_prompts(self, query: str, seed_sources: Sequence[Source]) -> tuple[str, str]:
        today = self._today()
        system_prompt = render_prompt(
            "planner.system_prompt",
            today_iso=today.isoformat(),
            today_year=today.year,
            max_sub_questions=MAX_SUB_QUESTIONS,
            max_follow_up_queries=MAX_FOLLOW_UPS,
            max_clarifying_questions=MAX_CLARIFYING,
        )
        user_prompt = render_prompt(
            "planner.user_prompt",
            query=query,
            sources=format_seed_sources(seed_sources),
        )
        return system_prompt, user_prompt

    async def plan(self, query: str, seed_sources: Sequence[Source] = ()) -> PlanOutcome:
        year = self._today().year
        system_prompt, user_prompt = self.build_prompts(query, seed_sources)
        try:
            raw = await self._complete_json(system_prompt, user_prompt)
        except Exception as e:
            logger.warning(f"Planner call failed, using fallback plan: {e}")
            return PlanOutcome(
                plan=fill_follow_ups(ResearchPlan(), query, year),
                stage="fallback",
                reason=str(e),
            )

        plan, stage = parse_plan_response(raw)
        if stage == "fallback":
            logger.warning(f"Planner returned unparseable output ({len(raw or '')} chars)")
        return PlanOutcome(
            plan=fill_follow_ups(plan, query, year),
            stage=stage,
            reason="unparseable planner output" if stage == "fallback" else None,
        )
