"""
Per-user candidate pool: concurrent fetch of every enabled source.
"""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime
from typing import NamedTuple
from urllib.parse import quote_plus

from newsdigest.logging_config import get_logger
from newsdigest.models import CustomSource, FetchedItem, SourceType
from newsdigest.storage.db import Database

from .feeds import MAX_ENTRIES_PER_SOURCE, FeedResult, fetch_feed

logger = get_logger("sources")

KEYWORD_SEARCH_URL = "https://www.google.com/search?q={query}"


class FeedTarget(NamedTuple):
    """A feed to fetch on behalf of a user."""

    feed_url: str
    source_label: str
    source_id: str | None


def keyword_watch_item(source: CustomSource, now: datetime | None = None) -> FetchedItem:
    """Placeholder item standing in for a keyword watch; no network involved."""
    keyword = source.value.strip()
    return FetchedItem(
        source_id=None,
        source_label=source.name,
        title=f"Keyword watch: {keyword}",
        url=KEYWORD_SEARCH_URL.format(query=quote_plus(keyword)),
        content=f"Track new mentions and updates for {keyword}.",
        published_at=now or datetime.now(UTC),
        topic=keyword,
    )


class SourceFetcher:
    """Builds the candidate pool of content for one user."""

    def __init__(
        self,
        db: Database,
        timeout: float = 10.0,
        max_workers: int = 10,
        max_entries: int = MAX_ENTRIES_PER_SOURCE,
        on_source_result: Callable[[FeedResult], None] | None = None,
    ):
        self.db = db
        self.timeout = timeout
        self.max_workers = max_workers
        self.max_entries = max_entries
        self.on_source_result = on_source_result

    def feed_targets(self, user_id: str) -> tuple[list[FeedTarget], list[CustomSource]]:
        """Resolve enabled feeds and keyword watches for a user."""
        catalog = self.db.get_enabled_catalog_sources(user_id)
        custom = self.db.get_enabled_custom_sources(user_id)

        targets = [
            FeedTarget(feed_url=source.url, source_label=source.name, source_id=source.id)
            for source in catalog
            if source.type == SourceType.RSS
        ]
        targets.extend(
            FeedTarget(feed_url=source.value, source_label=source.name, source_id=None)
            for source in custom
            if source.type in (SourceType.RSS, SourceType.URL)
        )
        keywords = [source for source in custom if source.type == SourceType.KEYWORD]
        return targets, keywords

    def fetch_for_user(self, user_id: str) -> list[FetchedItem]:
        """
        Fetch every enabled source for a user concurrently.

        Failed sources contribute no items. Order of the result is not
        significant; ranking imposes the final order.
        """
        targets, keyword_sources = self.feed_targets(user_id)
        results = self.fetch_all(targets)

        items: list[FetchedItem] = []
        for result in results:
            items.extend(result.items)

        now = datetime.now(UTC)
        items.extend(keyword_watch_item(source, now) for source in keyword_sources)

        failed = sum(1 for result in results if not result.success)
        logger.info(
            f"User {user_id}: {len(items)} candidates from {len(targets)} feeds "
            f"({failed} failed) and {len(keyword_sources)} keyword watches"
        )
        return items

    def fetch_all(self, targets: list[FeedTarget]) -> list[FeedResult]:
        """Fetch targets on a thread pool and join on all of them."""
        if not targets:
            return []

        results: list[FeedResult] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(targets))) as executor:
            future_to_target = {
                executor.submit(
                    fetch_feed,
                    feed_url=target.feed_url,
                    source_label=target.source_label,
                    source_id=target.source_id,
                    max_entries=self.max_entries,
                    timeout=self.timeout,
                ): target
                for target in targets
            }

            for future in as_completed(future_to_target):
                target = future_to_target[future]
                try:
                    result = future.result()
                except Exception as e:
                    result = FeedResult(
                        feed_url=target.feed_url,
                        source_label=target.source_label,
                        items=[],
                        success=False,
                        source_id=target.source_id,
                        error=f"Unhandled fetch error: {e}",
                    )

                self._report(result)
                results.append(result)

        return results

    def _report(self, result: FeedResult) -> None:
        """Log a failed source and pass every result to the status hook."""
        if not result.success:
            logger.warning(f"Source {result.source_label} failed: {result.error}")
        if self.on_source_result is None:
            return
        try:
            self.on_source_result(result)
        except Exception as e:
            logger.error(f"Source status hook raised: {e}")
