"""Image candidate mining from a single fetched HTML page."""
from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from deepscout.models.research import ImageCandidate
from deepscout.tools.web_utils import canonicalize_url, is_valid_url

MAX_IMG_TAGS = 70
MAX_CANDIDATES_PER_PAGE = 16
MIN_DIMENSION_PX = 180

META_IMAGE_KEYS = ("og:image", "og:image:secure_url", "twitter:image")
META_CONTEXT_KEYS = (
    "og:title",
    "og:description",
    "twitter:title",
    "twitter:description",
)
IMG_SRC_ATTRS = ("src", "data-src", "data-original", "data-lazy-src")
IMG_MARKER_ATTRS = ("alt", "title", "class", "id", "aria-label")

GENERIC_ASSET_RE = re.compile(
    r"(?<![a-z])(?:logo|icon|avatar|banner|placeholder|sprite|tracking|pixel|ads?|advert\w*"
    r"|favicon|badge|spinner|loader|emoji|button|share|social)s?(?![a-z])",
    re.IGNORECASE,
)
_DIMENSION_RE = re.compile(r"^\s*(\d+)(?:\.\d+)?\s*(?:px)?\s*$", re.IGNORECASE)


def parse_dimension(value: object) -> int | None:
    """``"640"`` and ``"640px"`` -> 640; anything else (``"100%"``, ``None``) -> None."""
    if value is None:
        return None
    match = _DIMENSION_RE.match(str(value))
    return int(match.group(1)) if match else None


def is_generic_asset(text: str) -> bool:
    return bool(text) and GENERIC_ASSET_RE.search(text) is not None


def _attr_text(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    return str(value or "")


def _meta_content(soup: BeautifulSoup, key: str) -> str:
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    if not isinstance(tag, Tag):
        return ""
    return str(tag.get("content") or "").strip()


def _resolve(raw: str, base_url: str) -> str | None:
    raw = raw.strip()
    if not raw or raw.lower().startswith("data:"):
        return None
    resolved = urljoin(base_url, raw)
    return resolved if is_valid_url(resolved) else None


def _img_source(tag: Tag) -> str:
    for attr in IMG_SRC_ATTRS:
        value = _attr_text(tag, attr).strip()
        if value and not value.lower().startswith("data:"):
            return value
    return ""


def _figcaption(tag: Tag) -> str:
    figure = tag.find_parent("figure")
    if figure is None:
        return ""
    caption = figure.find("figcaption")
    return caption.get_text(" ", strip=True) if caption else ""


def _meta_candidates(soup: BeautifulSoup, base_url: str) -> list[ImageCandidate]:
    context = " ".join(
        text for text in (_meta_content(soup, key) for key in META_CONTEXT_KEYS) if text
    )
    width = parse_dimension(_meta_content(soup, "og:image:width"))
    height = parse_dimension(_meta_content(soup, "og:image:height"))
    candidates: list[ImageCandidate] = []
    for key in META_IMAGE_KEYS:
        url = _resolve(_meta_content(soup, key), base_url)
        if url:
            candidates.append(
                ImageCandidate(
                    url=url,
                    context_text=context,
                    source_hint="meta",
                    width=width,
                    height=height,
                )
            )
    return candidates


def _img_candidates(soup: BeautifulSoup, base_url: str) -> list[ImageCandidate]:
    candidates: list[ImageCandidate] = []
    for tag in soup.find_all("img", limit=MAX_IMG_TAGS):
        if not isinstance(tag, Tag):
            continue
        url = _resolve(_img_source(tag), base_url)
        if not url:
            continue
        markers = " ".join(_attr_text(tag, attr) for attr in IMG_MARKER_ATTRS)
        if is_generic_asset(markers):
            continue
        width = parse_dimension(tag.get("width"))
        height = parse_dimension(tag.get("height"))
        if width is not None and height is not None and min(width, height) < MIN_DIMENSION_PX:
            continue
        context = " ".join(
            part
            for part in (
                _attr_text(tag, "alt").strip(),
                _attr_text(tag, "title").strip(),
                _attr_text(tag, "aria-label").strip(),
                _figcaption(tag),
            )
            if part
        )
        candidates.append(
            ImageCandidate(
                url=url,
                context_text=context,
                source_hint="img",
                width=width,
                height=height,
            )
        )
    return candidates


def mine_image_candidates(html: str, page_url: str) -> list[ImageCandidate]:
    """Meta images first, then ``<img>`` tags; unique by canonical URL, capped per page."""
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    mined: list[ImageCandidate] = []
    for candidate in _meta_candidates(soup, page_url) + _img_candidates(soup, page_url):
        key = canonicalize_url(candidate.url)
        if key in seen:
            continue
        seen.add(key)
        mined.append(candidate)
        if len(mined) >= MAX_CANDIDATES_PER_PAGE:
            break
    return mined
