"""Image relevance scoring and selection over the top-ranked pages."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence, Set
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from loguru import logger
from rank_bm25 import BM25Okapi

from deepscout.config import settings
from deepscout.models.research import ImageCandidate, RankedSource, SelectedImage
from deepscout.research_core.images.miner import is_generic_asset, mine_image_candidates
from deepscout.research_core.scoring import clamp
from deepscout.research_core.similarity import jaccard
from deepscout.services.concurrency import run_with_concurrency
from deepscout.tools.page_fetcher import FetchedPage
from deepscout.tools.web_utils import canonicalize_url, token_list, tokenize

REJECTED = -1.0

# Tokens every image URL carries; they say nothing about the topic.
URL_NOISE_TOKENS = frozenset(
    {"http", "https", "www", "com", "org", "net", "jpg", "jpeg", "png", "webp", "gif", "svg", "avif"}
)

PageFetcher = Callable[[str, float], Awaitable[FetchedPage | None]]


@dataclass(frozen=True)
class ImageScoringConfig:
    # page priority
    priority_lexical_weight: float = 0.35
    priority_coverage_weight: float = 0.25
    priority_relevance_weight: float = 0.20
    priority_hybrid_weight: float = 0.20
    max_pages: int = 12
    fetch_timeout_seconds: float = 7.0
    fetch_concurrency: int = 3

    # candidate score
    page_weight: float = 0.34
    context_weight: float = 0.34
    url_weight: float = 0.18
    large_side_px: int = 600
    large_bonus: float = 0.08
    medium_side_px: int = 300
    medium_bonus: float = 0.04
    meta_bonus: float = 0.06
    generic_penalty: float = 0.22
    min_similarity: float = 0.02
    generic_min_similarity: float = 0.08

    # selection
    strict_threshold: float = 0.17
    strict_threshold_no_query: float = 0.05
    soft_threshold: float = 0.11
    soft_threshold_no_query: float = 0.0
    max_images: int = 4
    min_images: int = 3
    thumbnail_base_url: str = "https://image.thum.io/get"


DEFAULT_IMAGE_CONFIG = ImageScoringConfig()


def config_from_settings() -> ImageScoringConfig:
    return ImageScoringConfig(
        fetch_timeout_seconds=float(settings.image_fetch_timeout_seconds),
        fetch_concurrency=max(int(settings.image_fetch_concurrency), 1),
        max_images=max(int(settings.max_images), 0),
        thumbnail_base_url=settings.thumbnail_base_url.rstrip("/"),
    )


@dataclass
class PageImages:
    """One fetched page and the candidates mined from it."""

    source: RankedSource
    priority: float
    candidates: list[ImageCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class ScoredImage:
    candidate: ImageCandidate
    source: RankedSource
    score: float


def _page_words(source: RankedSource) -> list[str]:
    return token_list(f"{source.title} {source.snippet} {source.url}")


def lexical_scores(query: str, sources: Sequence[RankedSource]) -> list[float]:
    """BM25 of the query against title+snippet+URL words, scaled to [0, 1]."""
    if not sources:
        return []
    query_terms = token_list(query)
    documents = [_page_words(source) for source in sources]
    if not query_terms or not any(documents):
        return [0.0] * len(sources)

    bm25 = BM25Okapi(documents)
    # BM25Okapi can go negative on tiny corpora through its idf floor.
    raw = [max(0.0, float(score)) for score in bm25.get_scores(query_terms)]
    top = max(raw)
    if top <= 0:
        return [0.0] * len(sources)
    return [score / top for score in raw]


def page_priority_scores(
    query: str,
    sources: Sequence[RankedSource],
    config: ImageScoringConfig = DEFAULT_IMAGE_CONFIG,
) -> list[float]:
    lexical = lexical_scores(query, sources)
    return [
        clamp(
            config.priority_lexical_weight * lex
            + config.priority_coverage_weight * source.coverage_score
            + config.priority_relevance_weight * source.relevance_score
            + config.priority_hybrid_weight * source.hybrid_score
        )
        for lex, source in zip(lexical, sources)
    ]


def url_tokens(url: str) -> set[str]:
    try:
        parts = urlsplit(url)
        text = f"{parts.netloc} {parts.path}"
    except ValueError:
        text = url
    return tokenize(text) - URL_NOISE_TOKENS


def _size_bonus(candidate: ImageCandidate, config: ImageScoringConfig) -> float:
    if candidate.width is None or candidate.height is None:
        return 0.0
    side = min(candidate.width, candidate.height)
    if side >= config.large_side_px:
        return config.large_bonus
    if side >= config.medium_side_px:
        return config.medium_bonus
    return 0.0


def score_candidate(
    candidate: ImageCandidate,
    page_score: float,
    query_tokens: Set[str],
    config: ImageScoringConfig = DEFAULT_IMAGE_CONFIG,
) -> float:
    """Blend page, context and URL relevance. Returns ``REJECTED`` (-1) on a hard reject."""
    context_similarity = jaccard(query_tokens, tokenize(candidate.context_text))
    url_similarity = jaccard(query_tokens, url_tokens(candidate.url))
    generic = is_generic_asset(candidate.context_text) or is_generic_asset(candidate.url)

    if query_tokens:
        best_similarity = max(context_similarity, url_similarity)
        if best_similarity < config.min_similarity:
            return REJECTED
        if generic and best_similarity < config.generic_min_similarity:
            return REJECTED

    score = (
        config.page_weight * page_score
        + config.context_weight * context_similarity
        + config.url_weight * url_similarity
        + _size_bonus(candidate, config)
        + (config.meta_bonus if candidate.source_hint == "meta" else 0.0)
        - (config.generic_penalty if generic else 0.0)
    )
    return clamp(score)


def best_candidate_for_page(
    page: PageImages,
    query_tokens: Set[str],
    taken: Set[str],
    config: ImageScoringConfig = DEFAULT_IMAGE_CONFIG,
) -> ScoredImage | None:
    best: ScoredImage | None = None
    for candidate in page.candidates:
        if canonicalize_url(candidate.url) in taken:
            continue
        score = score_candidate(candidate, page.priority, query_tokens, config)
        if score == REJECTED:
            continue
        if best is None or score > best.score:
            best = ScoredImage(candidate=candidate, source=page.source, score=score)
    return best


def thumbnail_url(page_url: str, config: ImageScoringConfig = DEFAULT_IMAGE_CONFIG) -> str:
    return f"{config.thumbnail_base_url.rstrip('/')}/width/1200/noanimate/{page_url}"


def _to_selected(item: ScoredImage) -> SelectedImage:
    return SelectedImage(
        image_url=item.candidate.url,
        source_url=item.source.url,
        source_title=item.source.title,
        score=round(item.score, 4),
    )


def select_images(
    query: str,
    pages: Sequence[PageImages],
    *,
    fallback_sources: Sequence[RankedSource] = (),
    max_images: int | None = None,
    config: ImageScoringConfig = DEFAULT_IMAGE_CONFIG,
) -> list[SelectedImage]:
    """Pick at most one image per page, best first, then pad with page thumbnails.

    ``pages`` should be in priority order; earlier pages claim an image URL first.
    """
    limit = config.max_images if max_images is None else min(max_images, config.max_images)
    if limit <= 0:
        return []
    query_tokens = tokenize(query)

    taken: set[str] = set()
    best_per_page: list[ScoredImage] = []
    for page in pages:
        best = best_candidate_for_page(page, query_tokens, taken, config)
        if best is None:
            continue
        taken.add(canonicalize_url(best.candidate.url))
        best_per_page.append(best)

    ranked = sorted(best_per_page, key=lambda item: item.score, reverse=True)
    strict = config.strict_threshold if query_tokens else config.strict_threshold_no_query
    soft = config.soft_threshold if query_tokens else config.soft_threshold_no_query

    chosen: list[ScoredImage] = []
    for threshold in (strict, soft, None):
        for item in ranked:
            if len(chosen) >= limit:
                break
            if item in chosen:
                continue
            if threshold is None or item.score >= threshold:
                chosen.append(item)

    selected = [_to_selected(item) for item in chosen]

    target = min(config.min_images, limit)
    represented = {canonicalize_url(image.source_url) for image in selected}
    for source in fallback_sources:
        if len(selected) >= target:
            break
        key = canonicalize_url(source.url)
        if key in represented:
            continue
        represented.add(key)
        selected.append(
            SelectedImage(
                image_url=thumbnail_url(source.url, config),
                source_url=source.url,
                source_title=source.title,
                fallback=True,
            )
        )
    return selected


class ImageSelector:
    """Fetches the highest-priority pages and selects illustrative images from them."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        config: ImageScoringConfig | None = None,
    ):
        self._fetch_page = fetch_page
        self.config = config or DEFAULT_IMAGE_CONFIG

    async def _mine_page(self, source: RankedSource) -> list[ImageCandidate]:
        try:
            page = await self._fetch_page(source.url, self.config.fetch_timeout_seconds)
            if page is None:
                return []
            return await asyncio.to_thread(
                mine_image_candidates, page.html, page.final_url or source.url
            )
        except Exception as e:
            logger.warning(f"Image mining failed for {source.url}: {e}")
            return []

    async def select(
        self,
        query: str,
        ranked: Sequence[RankedSource],
        *,
        max_images: int | None = None,
    ) -> list[SelectedImage]:
        """Fetch the top ``max_pages`` ranked sources, highest page priority first."""
        if not ranked:
            return []
        head = list(ranked[: self.config.max_pages])
        priorities = page_priority_scores(query, head, self.config)
        top = sorted(zip(head, priorities), key=lambda pair: pair[1], reverse=True)

        async def mine(pair: tuple[RankedSource, float], _index: int) -> PageImages:
            source, priority = pair
            candidates = await self._mine_page(source)
            return PageImages(source=source, priority=priority, candidates=candidates)

        pages = await run_with_concurrency(top, self.config.fetch_concurrency, mine)
        images = select_images(
            query,
            pages,
            fallback_sources=[source for source, _ in top] + list(ranked[self.config.max_pages :]),
            max_images=max_images,
            config=self.config,
        )
        logger.debug(
            f"Image selection: {sum(len(p.candidates) for p in pages)} candidates from "
            f"{len(pages)} pages -> {len(images)} images"
        )
        return images
