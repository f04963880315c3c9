from __future__ import annotations

from dataclasses import replace

from deepscout.models.research import RankedSource, Source
from deepscout.research_core.dedup import dedupe_sources
from deepscout.research_core.scoring import DEFAULT_WEIGHTS, HybridWeights, score_source
from deepscout.tools.web_utils import tokenize


def assign_source_ids(ranked: list[RankedSource]) -> list[RankedSource]:
    """Return a copy of ``ranked`` with ids ``W1..WN`` in list order."""
    return [replace(source, source_id=f"W{position}") for position, source in enumerate(ranked, 1)]


def rank_sources(
    query: str,
    sources: list[Source],
    max_sources: int,
    *,
    current_year: int | None = None,
    weights: HybridWeights = DEFAULT_WEIGHTS,
) -> list[RankedSource]:
    """Dedup, score, sort by hybrid score (stable), truncate and number sources."""
    query_tokens = tokenize(query)
    survivors = dedupe_sources(sources)
    scored = [
        score_source(source, query_tokens, current_year=current_year, weights=weights)
        for source in survivors
    ]
    # sorted() is stable, so equal hybrid scores keep input order.
    ordered = sorted(scored, key=lambda item: item.hybrid_score, reverse=True)
    return assign_source_ids(ordered[: max(int(max_sources), 0)])
