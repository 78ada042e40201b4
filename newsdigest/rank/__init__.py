"""Ranking - dedupe and score candidate items."""

from .ranking import (
    FRESHNESS_WEIGHT,
    FRESHNESS_WINDOW_HOURS,
    KEYWORD_WEIGHT,
    dedupe,
    dedupe_key,
    freshness_score,
    keyword_score,
    normalize_url,
    rank,
)

__all__ = [
    "FRESHNESS_WEIGHT",
    "FRESHNESS_WINDOW_HOURS",
    "KEYWORD_WEIGHT",
    "dedupe",
    "dedupe_key",
    "freshness_score",
    "keyword_score",
    "normalize_url",
    "rank",
]
