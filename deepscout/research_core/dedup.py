from __future__ import annotations

from dataclasses import dataclass

from deepscout.models.research import Source
from deepscout.research_core.similarity import jaccard
from deepscout.tools.web_utils import canonicalize_url, extract_host, tokenize

NEAR_DUPLICATE_THRESHOLD = 0.88
CONTENT_SIGNAL_DIVISOR = 8000.0


@dataclass(slots=True)
class _Kept:
    source: Source
    canonical_url: str
    host: str
    tokens: set[str]
    signal: float


def source_signal(source: Source) -> float:
    """Upstream score plus a bonus for extracted page text."""
    try:
        score = float(source.score or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    return score + len(source.page_content or "") / CONTENT_SIGNAL_DIVISOR


def _describe(source: Source) -> _Kept:
    return _Kept(
        source=source,
        canonical_url=canonicalize_url(source.url),
        host=extract_host(source.url),
        tokens=tokenize(f"{source.title} {source.snippet}"),
        signal=source_signal(source),
    )


def _is_duplicate(candidate: _Kept, kept: _Kept, threshold: float) -> bool:
    if candidate.canonical_url == kept.canonical_url:
        return True
    if not candidate.host or candidate.host != kept.host:
        return False
    return jaccard(candidate.tokens, kept.tokens) >= threshold


def dedupe_sources(
    sources: list[Source],
    *,
    threshold: float = NEAR_DUPLICATE_THRESHOLD,
) -> list[Source]:
    """Drop duplicate and near-duplicate sources, keeping the stronger signal.

    Sources are visited in input order. A candidate matching an already kept
    source (same canonical URL, or same host with title+snippet Jaccard at or
    above ``threshold``) either replaces it in place, when its signal is
    strictly higher, or is discarded.
    """
    kept: list[_Kept] = []
    for source in sources:
        candidate = _describe(source)
        for index, existing in enumerate(kept):
            if _is_duplicate(candidate, existing, threshold):
                if candidate.signal > existing.signal:
                    kept[index] = candidate
                break
        else:
            kept.append(candidate)
    return [item.source for item in kept]
