from __future__ import annotations

from deepscout.models.research import ResearchPlan, Source
from deepscout.research_core.ranking import rank_sources
from deepscout.services.research_cache import ResearchCache, TTLCache


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _entry_args():
    sources = [Source(title="Solar outlook", url="https://energy.gov/solar", score=0.8)]
    return {
        "sources": sources,
        "ranked_sources": rank_sources("solar", sources, max_sources=5),
        "plan": ResearchPlan(sub_questions=["What is the outlook?"], follow_up_queries=["solar outlook"]),
        "answer_summary": "Solar is growing.",
    }


def test_entry_served_until_ttl_and_dropped_after():
    clock = FakeClock()
    cache = ResearchCache(ttl_seconds=600, clock=clock)
    t0 = clock.now
    cache.put("quick", "solar outlook", **_entry_args())

    clock.now = t0 + 600 - 0.001
    entry = cache.get("quick", "solar outlook")
    assert entry is not None
    assert entry.timestamp == t0
    assert entry.answer_summary == "Solar is growing."

    clock.now = t0 + 600 + 0.001
    assert cache.get("quick", "solar outlook") is None
    assert len(cache) == 0


def test_key_is_mode_plus_normalized_query():
    cache = ResearchCache(clock=FakeClock())
    cache.put("quick", "  Año   2024 Solar ", **_entry_args())

    assert ResearchCache.key("quick", "Año 2024") == "quick:ano 2024"
    assert cache.get("quick", "ano 2024 solar") is not None
    assert cache.get("exhaustive", "ano 2024 solar") is None


def test_cached_plan_is_isolated_from_the_caller():
    cache = ResearchCache(clock=FakeClock())
    args = _entry_args()
    cache.put("quick", "solar", **args)

    args["plan"].follow_up_queries.append("mutated")

    entry = cache.get("quick", "solar")
    assert entry is not None
    assert entry.plan.follow_up_queries == ["solar outlook"]


def test_default_ttl_is_ten_minutes():
    assert ResearchCache().ttl_seconds == 600


def test_ttl_cache_sweep_removes_only_expired_entries():
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(10, clock=clock)
    cache.set("old", "a")
    clock.now += 8
    cache.set("new", "b")
    clock.now += 5

    assert cache.sweep() == 1
    assert cache.get("old") is None
    assert cache.get("new") == "b"
    assert len(cache) == 1


def test_ttl_cache_delete_and_clear():
    cache: TTLCache[int] = TTLCache(10, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0
