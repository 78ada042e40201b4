"""
RSS/Atom feed fetching with error handling and timeout management.
"""

import calendar
from datetime import UTC, datetime
from time import perf_counter
from typing import Any, NamedTuple

import feedparser
import httpx
from dateutil.parser import ParserError
from dateutil.parser import parse as parse_date

from newsdigest.logging_config import get_logger
from newsdigest.models import FetchedItem

from .parser import make_snippet
from .topics import infer_topic

logger = get_logger("feeds")

MAX_ENTRIES_PER_SOURCE = 15

DIGEST_AGENT_HEADERS = {
    "User-Agent": "NewsDigest/1.0",
    "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8",
}

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "application/rss+xml,application/atom+xml,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

BOT_FILTER_RETRY_STATUS_CODES = {403, 404}


class FeedResult(NamedTuple):
    """Result of fetching one source."""

    feed_url: str
    source_label: str
    items: list[FetchedItem]
    success: bool
    source_id: str | None = None
    error: str | None = None
    status_code: int | None = None
    final_url: str | None = None
    content_type: str | None = None
    attempts: int = 1
    response_time_ms: float | None = None
    entry_count: int = 0
    bozo: bool = False
    bozo_exception: str | None = None


def fetch_feed(
    feed_url: str,
    source_label: str,
    source_id: str | None = None,
    max_entries: int = MAX_ENTRIES_PER_SOURCE,
    timeout: float = 10.0,
) -> FeedResult:
    """
    Fetch and parse one RSS/Atom feed into candidate items.

    Never raises; any failure is reported as an unsuccessful FeedResult
    with no items.

    Args:
        feed_url: URL of the feed
        source_label: Display name stamped on each item
        source_id: Catalog source id, None for custom sources
        max_entries: Only the first N entries of the feed are considered
        timeout: Request timeout in seconds
    """
    logger.debug(f"Fetching feed: {source_label}")
    attempts = 0
    status_code: int | None = None
    final_url: str | None = None
    content_type: str | None = None
    response_time_ms: float | None = None
    attempt_summaries: list[str] = []

    def failure(error: str, **extra: Any) -> FeedResult:
        return FeedResult(
            feed_url=feed_url,
            source_label=source_label,
            items=[],
            success=False,
            source_id=source_id,
            error=error,
            status_code=status_code,
            final_url=final_url,
            content_type=content_type,
            attempts=max(attempts, 1),
            response_time_ms=response_time_ms,
            **extra,
        )

    try:
        response = None
        for profile_name, headers in (
            ("newsdigest", DIGEST_AGENT_HEADERS),
            ("browser", BROWSER_HEADERS),
        ):
            attempts += 1
            response, response_time_ms = _fetch_response(
                feed_url=feed_url,
                timeout=timeout,
                headers=headers,
            )
            status_code = response.status_code
            final_url = str(response.url)
            content_type = response.headers.get("content-type")
            attempt_summaries.append(f"{status_code} ({profile_name})")

            if status_code < 400:
                break

            # Some feed hosts/CDNs block simple bot user agents with false 404/403.
            if status_code in BOT_FILTER_RETRY_STATUS_CODES and headers is DIGEST_AGENT_HEADERS:
                logger.debug(f"{source_label}: got {status_code}, retrying with browser-like headers")
                continue

            break

        if response is None:
            raise RuntimeError("Feed request did not produce a response")

        if response.status_code >= 400:
            return failure(_format_http_error(response, attempt_summaries))

        feed = feedparser.parse(response.content)

        bozo_exception = str(feed.bozo_exception) if feed.bozo and feed.get("bozo_exception") else None
        if bozo_exception and not feed.entries:
            # Some bozo exceptions are recoverable (e.g., CharacterEncodingOverride)
            return failure(bozo_exception, bozo=True, bozo_exception=bozo_exception)

        fetched_at = datetime.now(UTC)
        items: list[FetchedItem] = []
        for entry in feed.entries[:max_entries]:
            item = entry_to_item(entry, source_label, source_id, fetched_at)
            if item is not None:
                items.append(item)

        logger.debug(f"Found {len(items)} items from {source_label}")

        return FeedResult(
            feed_url=feed_url,
            source_label=source_label,
            items=items,
            success=True,
            source_id=source_id,
            status_code=status_code,
            final_url=final_url,
            content_type=content_type,
            attempts=attempts,
            response_time_ms=response_time_ms,
            entry_count=len(feed.entries),
            bozo=bool(feed.bozo),
            bozo_exception=bozo_exception,
        )

    except httpx.TimeoutException as e:
        return failure(f"Request timed out after {timeout}s: {e}")
    except httpx.HTTPError as e:
        return failure(str(e) or e.__class__.__name__)
    except Exception as e:
        return failure(f"Unhandled fetch error: {e}")


def entry_to_item(
    entry: dict,
    source_label: str,
    source_id: str | None,
    fetched_at: datetime,
) -> FetchedItem | None:
    """Map a parsed feed entry to a FetchedItem, or None if it lacks a title or link."""
    title = (entry.get("title") or "").strip()
    url = (entry.get("link") or "").strip()
    if not title or not url:
        return None

    return FetchedItem(
        source_id=source_id,
        source_label=source_label,
        title=title,
        url=url,
        content=_entry_content(entry, title),
        published_at=_parse_entry_date(entry) or fetched_at,
        topic=infer_topic(title),
    )


def _entry_content(entry: dict, title: str) -> str:
    """First available of: snippet, full content, summary, title."""
    full_content = ""
    if content_blocks := entry.get("content"):
        full_content = (content_blocks[0].get("value") or "").strip()
    summary = (entry.get("summary") or "").strip()
    snippet = make_snippet(full_content or summary)

    for candidate in (snippet, full_content, summary):
        if candidate:
            return candidate
    return title


def _fetch_response(feed_url: str, timeout: float, headers: dict[str, str]) -> tuple[httpx.Response, float]:
    """Fetch a feed URL and return (response, elapsed_ms)."""
    started = perf_counter()
    response = httpx.get(
        feed_url,
        timeout=timeout,
        follow_redirects=True,
        headers=headers,
    )
    elapsed_ms = (perf_counter() - started) * 1000
    return response, elapsed_ms


def _format_http_error(response: httpx.Response, attempt_summaries: list[str]) -> str:
    """Build a compact HTTP error message with diagnostics."""
    parts = [f"HTTP {response.status_code} for {response.url}"]
    if attempt_summaries:
        parts.append(f"attempts: {', '.join(attempt_summaries)}")
    if content_type := response.headers.get("content-type"):
        parts.append(f"content-type: {content_type}")
    return " | ".join(parts)


def _parse_entry_date(entry: dict) -> datetime | None:
    """Parse publication date from feed entry."""
    for field in ["published_parsed", "updated_parsed", "created_parsed"]:
        if parsed := entry.get(field):
            try:
                # feedparser normalizes parsed dates to UTC struct_time
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC)
            except (ValueError, OverflowError, TypeError):
                continue

    for field in ["published", "updated", "created"]:
        if date_str := entry.get(field):
            try:
                dt = parse_date(date_str)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=UTC)
                return dt
            except (ValueError, OverflowError, ParserError):
                continue

    return None
