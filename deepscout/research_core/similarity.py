from __future__ import annotations

from collections.abc import Set

from deepscout.tools.web_utils import tokenize


def jaccard(a: Set[str], b: Set[str]) -> float:
    """Token-set Jaccard similarity. Empty input on either side scores 0.0."""
    if not a or not b:
        return 0.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def text_similarity(left: str, right: str) -> float:
    return jaccard(tokenize(left), tokenize(right))
