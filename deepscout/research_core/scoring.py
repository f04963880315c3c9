"""Per-source scoring: relevance, authority, freshness, coverage and the hybrid blend."""

from __future__ import annotations

import re
from collections.abc import Set
from dataclasses import dataclass
from datetime import date
from urllib.parse import urlsplit

from deepscout.models.research import RankedSource, Source
from deepscout.tools.web_utils import canonicalize_url, tokenize


@dataclass(frozen=True, slots=True)
class HybridWeights:
    relevance: float = 0.42
    authority: float = 0.24
    freshness: float = 0.20
    coverage: float = 0.14


DEFAULT_WEIGHTS = HybridWeights()

# Ordered: the first matching pattern wins.
AUTHORITY_PATTERNS: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"(^|\.)(gov|mil|gob|gouv)(\.[a-z]{2})?$"), 1.0),
    (re.compile(r"(^|\.)(edu(\.[a-z]{2})?|ac\.[a-z]{2})$"), 0.96),
    (
        re.compile(
            r"(^|\.)(int|un\.org|who\.int|worldbank\.org|imf\.org|oecd\.org|"
            r"europa\.eu|wto\.org|unesco\.org|unicef\.org)$"
        ),
        0.95,
    ),
    (
        re.compile(r"(^|\.)(reuters\.com|apnews\.com|afp\.com|efe\.com|bloomberg\.com|europapress\.es)$"),
        0.9,
    ),
    (
        re.compile(
            r"(^|\.)(nature\.com|science\.org|sciencedirect\.com|springer\.com|"
            r"link\.springer\.com|wiley\.com|thelancet\.com|nejm\.org|bmj\.com|"
            r"arxiv\.org|jstor\.org|plos\.org|cell\.com|pnas\.org|ieee\.org)$"
        ),
        0.9,
    ),
    (re.compile(r"(^|\.)(wikipedia\.org|britannica\.com|wikimedia\.org)$"), 0.75),
)
AUTHORITY_MULTI_LABEL = 0.62
AUTHORITY_DEFAULT = 0.55
AUTHORITY_MALFORMED = 0.45

FRESH_TEXT_RE = re.compile(
    r"\b(breaking|updated?|today|just in|"
    r"ultima hora|última hora|hoy|en directo|en vivo|actualizad[oa])\b",
    re.IGNORECASE,
)
YEAR_RE = re.compile(r"\b(20\d{2})\b")
FRESH_TEXT_SCORE = 0.95
NO_YEAR_FRESHNESS = 0.55

NEUTRAL_COVERAGE = 0.5


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def relevance_score(source: Source) -> float:
    try:
        return clamp(float(source.score or 0.0))
    except (TypeError, ValueError):
        return 0.0


def authority_score(url: str) -> float:
    try:
        host = (urlsplit((url or "").strip()).hostname or "").lower()
    except ValueError:
        return AUTHORITY_MALFORMED
    if not host:
        return AUTHORITY_MALFORMED
    if host.startswith("www."):
        host = host[4:]
    for pattern, score in AUTHORITY_PATTERNS:
        if pattern.search(host):
            return score
    labels = [label for label in host.split(".") if label]
    return AUTHORITY_MULTI_LABEL if len(labels) >= 3 else AUTHORITY_DEFAULT


def _year_decay(age: int) -> float:
    if age <= 0:
        return 0.95
    if age == 1:
        return 0.82
    if age == 2:
        return 0.72
    if age <= 4:
        return 0.62
    return 0.45


def freshness_score(source: Source, *, current_year: int | None = None) -> float:
    text = f"{source.title} {source.snippet}"
    if FRESH_TEXT_RE.search(text):
        return FRESH_TEXT_SCORE
    years = [int(match) for match in YEAR_RE.findall(text)]
    if not years:
        return NO_YEAR_FRESHNESS
    year_now = current_year if current_year is not None else date.today().year
    return _year_decay(year_now - max(years))


def coverage_score(query_tokens: Set[str], source: Source) -> float:
    # Empty query is neutral (0.5); a source with no comparable tokens scores 0.
    if not query_tokens:
        return NEUTRAL_COVERAGE
    source_tokens = tokenize(f"{source.title} {source.snippet} {source.page_content or ''}")
    if not source_tokens:
        return 0.0
    return len(query_tokens & source_tokens) / len(query_tokens)


def hybrid_score(
    relevance: float,
    authority: float,
    freshness: float,
    coverage: float,
    *,
    weights: HybridWeights = DEFAULT_WEIGHTS,
) -> float:
    blended = (
        weights.relevance * relevance
        + weights.authority * authority
        + weights.freshness * freshness
        + weights.coverage * coverage
    )
    return clamp(blended)


def score_source(
    source: Source,
    query_tokens: Set[str],
    *,
    current_year: int | None = None,
    weights: HybridWeights = DEFAULT_WEIGHTS,
) -> RankedSource:
    """Attach all sub-scores to a source. ``source_id`` is left empty."""
    relevance = relevance_score(source)
    authority = authority_score(source.url)
    freshness = freshness_score(source, current_year=current_year)
    coverage = coverage_score(query_tokens, source)
    return RankedSource(
        title=source.title,
        url=source.url,
        snippet=source.snippet,
        page_content=source.page_content,
        score=source.score,
        canonical_url=canonicalize_url(source.url),
        relevance_score=relevance,
        authority_score=authority,
        freshness_score=freshness,
        coverage_score=coverage,
        hybrid_score=hybrid_score(relevance, authority, freshness, coverage, weights=weights),
    )
