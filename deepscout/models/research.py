from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Union

from pydantic import BaseModel

ResearchMode = Literal["quick", "exhaustive"]
ImageSourceHint = Literal["meta", "img"]
TelemetryValue = Union[str, int, float, bool]


@dataclass(frozen=True, slots=True)
class Source:
    """One search result, optionally enriched with extracted page text."""

    title: str
    url: str
    snippet: str = ""
    page_content: str | None = None
    score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class SearchResponse:
    """What a ``search(query, k)`` callable returns."""

    results: list[Source] = field(default_factory=list)
    provider: str = ""
    answer: str | None = None
    fallback_from: str | None = None
    fallback_reason: str | None = None
    from_cache: bool = False


@dataclass(frozen=True, slots=True)
class RankedSource:
    title: str
    url: str
    snippet: str
    page_content: str | None
    score: float | None
    canonical_url: str
    relevance_score: float
    authority_score: float
    freshness_score: float
    coverage_score: float
    hybrid_score: float
    source_id: str = ""

    def to_dict(self, *, include_content: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_content:
            data.pop("page_content", None)
        return data


@dataclass(frozen=True, slots=True)
class ImageCandidate:
    url: str
    context_text: str
    source_hint: ImageSourceHint
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True, slots=True)
class SelectedImage:
    image_url: str
    source_url: str
    source_title: str
    score: float = 0.0
    fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ResearchPlan(BaseModel):
    """Sub-questions and search queries derived from the user query."""

    sub_questions: list[str] = []
    follow_up_queries: list[str] = []
    clarifying_questions: list[str] = []

    @property
    def is_empty(self) -> bool:
        return not (self.sub_questions or self.follow_up_queries or self.clarifying_questions)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    timestamp: float
    sources: tuple[Source, ...]
    ranked_sources: tuple[RankedSource, ...]
    plan: ResearchPlan
    answer_summary: str | None = None


@dataclass(slots=True)
class ResearchBundle:
    query: str
    mode: ResearchMode
    sources: list[RankedSource] = field(default_factory=list)
    images: list[SelectedImage] = field(default_factory=list)
    plan: ResearchPlan = field(default_factory=ResearchPlan)
    answer_summary: str | None = None
    telemetry: dict[str, TelemetryValue] = field(default_factory=dict)
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "mode": self.mode,
            "sources": [source.to_dict() for source in self.sources],
            "images": [image.to_dict() for image in self.images],
            "plan": self.plan.model_dump(),
            "answer_summary": self.answer_summary,
            "telemetry": dict(self.telemetry),
            "cached": self.cached,
        }
