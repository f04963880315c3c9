from __future__ import annotations

from deepscout.models.research import Source
from deepscout.research_core.dedup import dedupe_sources
from deepscout.research_core.ranking import assign_source_ids, rank_sources

WORDS = (
    "alpha bravo charlie delta echo foxtrot golf hotel india juliet "
    "kilo lima mike november oscar papa quebec romeo sierra tango"
).split()


def _source(url: str, title: str, snippet: str = "", score: float | None = None, content=None):
    return Source(title=title, url=url, snippet=snippet, score=score, page_content=content)


def test_near_duplicates_at_jaccard_090_are_merged():
    # 9 shared tokens out of 10 -> 0.90
    first = _source("https://example.com/a", " ".join(WORDS[:10]))
    second = _source("https://example.com/b", " ".join(WORDS[:9]))

    assert len(dedupe_sources([first, second])) == 1


def test_sources_at_jaccard_085_are_kept():
    # 17 shared tokens out of 20 -> 0.85
    first = _source("https://example.com/a", " ".join(WORDS[:20]))
    second = _source("https://example.com/b", " ".join(WORDS[:17]))

    assert len(dedupe_sources([first, second])) == 2


def test_near_duplicates_on_different_hosts_are_kept():
    first = _source("https://one.example/a", " ".join(WORDS[:10]))
    second = _source("https://two.example/a", " ".join(WORDS[:10]))

    assert len(dedupe_sources([first, second])) == 2


def test_same_canonical_url_keeps_stronger_signal_in_first_slot():
    weak = _source("https://www.example.com/story?utm_source=x", "Story", score=0.3)
    other = _source("https://other.example/page", "Other", score=0.5)
    strong = _source("https://example.com/story/", "Story again", score=0.9)

    survivors = dedupe_sources([weak, other, strong])

    assert [s.title for s in survivors] == ["Story again", "Other"]


def test_page_content_breaks_ties_on_signal():
    bare = _source("https://example.com/story", "Story", score=0.5)
    enriched = _source("https://example.com/story#top", "Story", score=0.5, content="x" * 800)

    survivors = dedupe_sources([bare, enriched])

    assert survivors == [enriched]


def test_equal_signal_keeps_the_first_seen():
    first = _source("https://example.com/story", "First", score=0.5)
    second = _source("https://example.com/story", "Second", score=0.5)

    assert [s.title for s in dedupe_sources([first, second])] == ["First"]


def _pool() -> list[Source]:
    return [
        _source("https://randomblog.example/solar", "Solar notes", score=0.2),
        _source("https://www.energy.gov/solar-2026", "Solar energy outlook 2026", score=0.9),
        _source("https://en.wikipedia.org/wiki/Solar_power", "Solar power", score=0.6),
        _source("https://news.example.org/grid", "Grid storage update", score=0.4),
    ]


def test_rank_sources_sorted_with_sequential_ids():
    ranked = rank_sources("solar energy", _pool(), max_sources=10, current_year=2026)

    scores = [r.hybrid_score for r in ranked]
    assert scores == sorted(scores, reverse=True)
    assert [r.source_id for r in ranked] == ["W1", "W2", "W3", "W4"]
    assert ranked[0].url == "https://www.energy.gov/solar-2026"
    assert ranked[0].canonical_url == "https://energy.gov/solar-2026"


def test_rank_sources_truncates_to_max_sources():
    ranked = rank_sources("solar energy", _pool(), max_sources=2, current_year=2026)
    assert [r.source_id for r in ranked] == ["W1", "W2"]


def test_rank_sources_empty_pool():
    assert rank_sources("solar", [], max_sources=5) == []


def test_assign_source_ids_renumbers_after_the_list_changes():
    ranked = rank_sources("solar energy", _pool(), max_sources=10, current_year=2026)
    trimmed = assign_source_ids(ranked[1:])

    assert [r.source_id for r in trimmed] == ["W1", "W2", "W3"]
    assert trimmed[0].url == ranked[1].url
    assert ranked[1].source_id == "W2"
