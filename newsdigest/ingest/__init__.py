"""Ingestion - fetch candidate items from feeds and keyword watches."""

from .feeds import MAX_ENTRIES_PER_SOURCE, FeedResult, fetch_feed
from .sources import FeedTarget, SourceFetcher, keyword_watch_item
from .topics import infer_topic

__all__ = [
    "MAX_ENTRIES_PER_SOURCE",
    "FeedResult",
    "FeedTarget",
    "SourceFetcher",
    "fetch_feed",
    "infer_topic",
    "keyword_watch_item",
]
