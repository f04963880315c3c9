from __future__ import annotations

import pytest

from deepscout.research_core.images.miner import (
    MAX_CANDIDATES_PER_PAGE,
    is_generic_asset,
    mine_image_candidates,
    parse_dimension,
)

PAGE_URL = "https://news.example.com/article/solar"

PAGE_HTML = """
<html><head>
  <meta property="og:image" content="/images/solar-farm.jpg">
  <meta property="og:title" content="Solar farm expansion">
  <meta property="og:description" content="New capacity in Spain">
  <meta name="twitter:image" content="https://cdn.example.com/solar-panels.jpg">
</head><body>
  <img src="/static/company-logo.png" alt="company logo">
  <img data-src="/img/turbine.jpg" alt="Wind turbine at sunset" width="800" height="600">
  <img src="data:image/gif;base64,AAAA" data-lazy-src="/img/lazy.jpg" alt="lazy loaded chart">
  <img src="/img/tiny.jpg" alt="tiny chart" width="100" height="90">
  <img src="/img/header.jpg" class="site-header__avatar">
  <figure><img src="/img/fig.jpg"><figcaption>Installed capacity by region</figcaption></figure>
  <img src="/images/solar-farm.jpg" alt="duplicate of the og image">
</body></html>
"""


def test_mines_meta_then_img_candidates():
    candidates = mine_image_candidates(PAGE_HTML, PAGE_URL)

    assert [c.url for c in candidates] == [
        "https://news.example.com/images/solar-farm.jpg",
        "https://cdn.example.com/solar-panels.jpg",
        "https://news.example.com/img/turbine.jpg",
        "https://news.example.com/img/lazy.jpg",
        "https://news.example.com/img/fig.jpg",
    ]
    assert [c.source_hint for c in candidates] == ["meta", "meta", "img", "img", "img"]


def test_meta_context_combines_title_and_description():
    meta = mine_image_candidates(PAGE_HTML, PAGE_URL)[0]
    assert meta.context_text == "Solar farm expansion New capacity in Spain"


def test_img_context_and_dimensions():
    by_url = {c.url: c for c in mine_image_candidates(PAGE_HTML, PAGE_URL)}

    turbine = by_url["https://news.example.com/img/turbine.jpg"]
    assert turbine.context_text == "Wind turbine at sunset"
    assert (turbine.width, turbine.height) == (800, 600)

    figure = by_url["https://news.example.com/img/fig.jpg"]
    assert figure.context_text == "Installed capacity by region"
    assert figure.width is None


def test_small_images_rejected_only_when_both_dimensions_known():
    html = """
    <img src="/a.jpg" alt="chart" width="100" height="90">
    <img src="/b.jpg" alt="chart" width="100">
    <img src="/c.jpg" alt="chart" width="400px" height="179">
    """
    urls = [c.url for c in mine_image_candidates(html, "https://example.com/")]
    assert urls == ["https://example.com/b.jpg"]


def test_candidates_are_capped_per_page():
    html = "".join(f'<img src="/photo-{i}.jpg" alt="photo {i}">' for i in range(30))
    assert len(mine_image_candidates(html, "https://example.com/")) == MAX_CANDIDATES_PER_PAGE


def test_empty_html_yields_nothing():
    assert mine_image_candidates("", PAGE_URL) == []


@pytest.mark.parametrize(
    "value,expected",
    [("640", 640), ("640px", 640), (" 300 ", 300), ("100%", None), (None, None), ("auto", None)],
)
def test_parse_dimension(value, expected):
    assert parse_dimension(value) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("company logo", True),
        ("site-header__avatar", True),
        ("social-icons", True),
        ("https://cdn.example.com/ads/banner.png", True),
        ("Wind turbine at sunset", False),
        ("Installed capacity by region", False),
        ("headline photo", False),
        ("", False),
    ],
)
def test_generic_asset_pattern(text, expected):
    assert is_generic_asset(text) is expected
