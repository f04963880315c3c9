from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock

import pytest

from deepscout.agents import query_planner
from deepscout.agents.query_planner import QueryPlanner, fill_follow_ups, parse_plan_response
from deepscout.models.research import ResearchPlan, Source

PLAN_JSON = json.dumps(
    {
        "sub_questions": ["How much solar was installed in 2025?"],
        "follow_up_queries": ["solar installations 2025", "solar capacity europe"],
        "clarifying_questions": [],
    }
)


def test_parse_strict_json_object():
    plan, stage = parse_plan_response(PLAN_JSON)

    assert stage == "strict"
    assert plan.follow_up_queries == ["solar installations 2025", "solar capacity europe"]


def test_parse_fenced_json_is_extracted():
    plan, stage = parse_plan_response(f"Here is the plan:\n```json\n{PLAN_JSON}\n```")

    assert stage == "extracted"
    assert plan.sub_questions == ["How much solar was installed in 2025?"]


def test_parse_object_wrapped_in_prose_is_extracted():
    plan, stage = parse_plan_response('Sure! {"follow_up_queries": ["grid storage"]} Hope it helps.')

    assert stage == "extracted"
    assert plan.follow_up_queries == ["grid storage"]


def test_parse_object_followed_by_braced_prose_is_extracted():
    raw = (
        'Here is the plan: {"sub_questions": ["a?"], "follow_up_queries": ["q one"]} '
        "(see {notes})"
    )
    plan, stage = parse_plan_response(raw)

    assert stage == "extracted"
    assert plan.sub_questions == ["a?"]
    assert plan.follow_up_queries == ["q one"]


def test_parse_first_of_two_objects_is_extracted():
    raw = '{"follow_up_queries": ["q one", "q two"]}\n{"extra": 1}'
    plan, stage = parse_plan_response(raw)

    assert stage == "extracted"
    assert plan.follow_up_queries == ["q one", "q two"]


def test_parse_skips_empty_leading_value_for_a_real_plan():
    raw = 'Based on [1] and [2]: {"follow_up_queries": ["battery storage costs"]}'
    plan, stage = parse_plan_response(raw)

    assert stage == "extracted"
    assert plan.follow_up_queries == ["battery storage costs"]


def test_parse_bare_array_reads_sub_questions():
    plan, stage = parse_plan_response('["What is X?", "Why is Y?", 3]')

    assert stage == "strict"
    assert plan.sub_questions == ["What is X?", "Why is Y?"]
    assert plan.follow_up_queries == []


@pytest.mark.parametrize("raw", ["", "no json here", "{not: valid", "42"])
def test_parse_garbage_falls_back_to_empty_plan(raw):
    plan, stage = parse_plan_response(raw)

    assert stage == "fallback"
    assert plan.is_empty


def test_lists_are_deduplicated_after_normalization_and_capped():
    payload = {
        "sub_questions": [f"question {i}" for i in range(12)],
        "follow_up_queries": ["Año 2024", "ano 2024", "  AÑO   2024 ", "other"],
        "clarifying_questions": ["a?", "b?", "c?", "d?"],
    }
    plan, _ = parse_plan_response(json.dumps(payload))

    assert len(plan.sub_questions) == query_planner.MAX_SUB_QUESTIONS
    assert plan.follow_up_queries == ["Año 2024", "other"]
    assert len(plan.clarifying_questions) == query_planner.MAX_CLARIFYING


def test_camel_case_keys_are_accepted():
    plan, stage = parse_plan_response('{"subQuestions": ["a?"], "followUpQueries": ["b"]}')

    assert stage == "strict"
    assert plan.sub_questions == ["a?"]
    assert plan.follow_up_queries == ["b"]


def test_fill_follow_ups_from_sub_questions():
    plan = fill_follow_ups(ResearchPlan(sub_questions=["What is X?"]), "x", 2026)
    assert plan.follow_up_queries == ["recent data and evidence about What is X?"]


def test_fill_follow_ups_from_query_templates():
    plan = fill_follow_ups(ResearchPlan(), "solar  outlook", 2026)
    assert plan.follow_up_queries == [
        "solar outlook",
        "solar outlook latest data 2026",
        "solar outlook analysis and evidence",
    ]


def test_fill_follow_ups_keeps_existing():
    plan = ResearchPlan(follow_up_queries=["keep me"])
    assert fill_follow_ups(plan, "q", 2026) is plan


def _sources(count: int) -> list[Source]:
    return [
        Source(title=f"Source title {i}", url=f"https://site{i}.example/", snippet=f"snippet {i}")
        for i in range(1, count + 1)
    ]


@pytest.mark.asyncio
async def test_planner_makes_one_call_seeded_with_six_sources():
    complete_json = AsyncMock(return_value=PLAN_JSON)
    planner = QueryPlanner(complete_json, today=lambda: date(2026, 3, 1))

    outcome = await planner.plan("solar outlook", _sources(7))

    assert outcome.stage == "strict"
    assert outcome.reason is None
    complete_json.assert_awaited_once()
    system_prompt, user_prompt = complete_json.await_args.args
    assert "2026-03-01" in system_prompt
    assert "solar outlook" in user_prompt
    assert "Source title 6" in user_prompt
    assert "Source title 7" not in user_prompt


@pytest.mark.asyncio
async def test_planner_llm_failure_yields_fallback_with_templates():
    complete_json = AsyncMock(side_effect=RuntimeError("gateway timeout"))
    planner = QueryPlanner(complete_json, today=lambda: date(2026, 3, 1))

    outcome = await planner.plan("solar outlook")

    assert outcome.stage == "fallback"
    assert outcome.reason == "gateway timeout"
    assert outcome.plan.follow_up_queries == [
        "solar outlook",
        "solar outlook latest data 2026",
        "solar outlook analysis and evidence",
    ]


@pytest.mark.asyncio
async def test_planner_unparseable_output_is_fallback():
    planner = QueryPlanner(AsyncMock(return_value="I cannot help"), today=lambda: date(2026, 3, 1))

    outcome = await planner.plan("solar outlook")

    assert outcome.stage == "fallback"
    assert len(outcome.plan.follow_up_queries) == 3
