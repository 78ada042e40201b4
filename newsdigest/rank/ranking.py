"""
Deduplication and relevance scoring of candidate items.

Everything here is pure: given the same items, keywords and clock the
output is identical.
"""

from datetime import UTC, datetime
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from newsdigest.models import FetchedItem, RankedItem

KEYWORD_WEIGHT = 0.7
FRESHNESS_WEIGHT = 0.3
FRESHNESS_WINDOW_HOURS = 24

TRACKING_PARAMS = frozenset({"utm_source", "utm_medium"})
DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def normalize_url(url: str) -> str:
    """
    Canonical form of a URL for duplicate detection.

    Drops the fragment and the utm_source/utm_medium parameters, lower-cases
    the scheme and host, drops a default port and turns an empty path into
    "/". Strings that are not absolute URLs come back unchanged.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url

    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if netloc.endswith(":") or (port is not None and DEFAULT_PORTS.get(scheme) == port):
        netloc = netloc.rsplit(":", 1)[0]

    query = parts.query
    params = parse_qsl(query, keep_blank_values=True)
    kept = [(key, value) for key, value in params if key not in TRACKING_PARAMS]
    if len(kept) != len(params):
        query = urlencode(kept)

    return urlunsplit((scheme, netloc, parts.path or "/", query, ""))


def dedupe_key(item: FetchedItem) -> str:
    return f"{item.title.strip().lower()}|{normalize_url(item.url)}"


def dedupe(items: list[FetchedItem]) -> list[FetchedItem]:
    """Drop later duplicates, keeping the first occurrence in input order."""
    seen: set[str] = set()
    unique: list[FetchedItem] = []
    for item in items:
        key = dedupe_key(item)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def keyword_score(text: str, keywords: list[str]) -> int:
    """Count of distinct keywords found as substrings of the text."""
    haystack = text.lower()
    needles = {keyword.lower() for keyword in keywords if keyword}
    return sum(1 for needle in needles if needle in haystack)


def freshness_score(published_at: datetime, now: datetime) -> float:
    """Linear decay from 1.0 at publish time to 0.0 at the window edge."""
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    # Future-dated items count as just published
    hours = max(0.0, (now - published_at).total_seconds() / 3600)
    return max(0.0, FRESHNESS_WINDOW_HOURS - hours) / FRESHNESS_WINDOW_HOURS


def score_item(item: FetchedItem, keywords: list[str], now: datetime) -> float:
    matches = keyword_score(f"{item.title} {item.content}", keywords)
    return matches * KEYWORD_WEIGHT + freshness_score(item.published_at, now) * FRESHNESS_WEIGHT


def rank(
    items: list[FetchedItem],
    keywords: list[str],
    now: datetime | None = None,
) -> list[RankedItem]:
    """
    Score items and order them by score, highest first.

    The sort is stable so ties keep their input order. Nothing is
    dropped; truncation is up to the caller.
    """
    now = now or datetime.now(UTC)
    scored = [
        RankedItem(**item.model_dump(exclude={"score"}), score=score_item(item, keywords, now))
        for item in items
    ]
    return sorted(scored, key=lambda ranked: ranked.score, reverse=True)
