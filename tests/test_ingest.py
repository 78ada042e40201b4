"""Tests for the ingestion module."""

import time
from datetime import UTC, datetime
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import Mock, patch

import httpx
import pytest

from newsdigest.ingest import FeedResult, SourceFetcher, fetch_feed, infer_topic, keyword_watch_item
from newsdigest.ingest.feeds import MAX_ENTRIES_PER_SOURCE, entry_to_item
from newsdigest.ingest.parser import clean_text, extract_text_content, make_snippet
from newsdigest.models import CustomSource, FetchedItem, SourceType
from newsdigest.storage.db import Database


def rss_document(entries: list[str]) -> bytes:
    body = "".join(entries)
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>Test</title>'
        f"{body}</channel></rss>"
    ).encode()


def rss_entry(title: str | None, link: str | None, description: str = "", pub_date: str | None = None) -> str:
    parts = ["<item>"]
    if title is not None:
        parts.append(f"<title>{title}</title>")
    if link is not None:
        parts.append(f"<link>{link}</link>")
    if description:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    parts.append("</item>")
    return "".join(parts)


def mock_response(content: bytes, status_code: int = 200) -> Mock:
    response = Mock()
    response.content = content
    response.status_code = status_code
    response.url = "https://example.com/feed.xml"
    response.headers = {"content-type": "application/rss+xml"}
    return response


class TestTextCleaning:
    """Tests for text cleaning."""

    def test_removes_excessive_whitespace(self):
        """Should normalize whitespace."""
        assert clean_text("Hello    world") == "Hello world"

    def test_removes_excessive_newlines(self):
        """Should reduce multiple newlines."""
        assert clean_text("Hello\n\n\n\nWorld") == "Hello\n\nWorld"

    def test_removes_newsletter_artifacts(self):
        """Should remove common newsletter text."""
        cleaned = clean_text("Great content here. Subscribe to our newsletter for more.")
        assert "Subscribe" not in cleaned
        assert "Great content here." in cleaned


class TestContentExtraction:
    """Tests for HTML content extraction."""

    def test_extracts_paragraph_text(self):
        assert "Hello World" in extract_text_content("<html><body><p>Hello World</p></body></html>")

    def test_removes_scripts(self):
        content = extract_text_content("<script>alert('bad')</script><p>Good</p>")
        assert "alert" not in content
        assert "Good" in content

    def test_preserves_headings(self):
        content = extract_text_content("<h2>Title</h2><p>Content</p>")
        assert "## Title" in content

    def test_snippet_is_single_line(self):
        snippet = make_snippet("<p>First para.</p><p>Second   para.</p>")
        assert "\n" not in snippet
        assert snippet == "First para. Second para."

    def test_empty_html(self):
        assert extract_text_content("") == ""


class TestTopicInference:
    """Tests for ordered topic rules."""

    @pytest.mark.parametrize(
        ("title", "topic"),
        [
            ("New LLM beats benchmarks", "LLM"),
            ("Large Language Model pricing drops", "LLM"),
            ("Vision transformers revisited", "Computer Vision"),
            ("Robot dogs at the office", "Robotics"),
            ("EU regulation lands", "AI Policy"),
            ("White House AI policy memo", "AI Policy"),
            ("Agents that book flights", "Agents"),
            ("Quarterly earnings call", None),
        ],
    )
    def test_rules(self, title, topic):
        assert infer_topic(title) == topic

    def test_first_matching_rule_wins(self):
        """An LLM agent headline is tagged LLM, not Agents."""
        assert infer_topic("LLM agent frameworks compared") == "LLM"
        assert infer_topic("Vision policy for robots") == "Computer Vision"


class TestEntryMapping:
    """Tests for feed entry to item mapping."""

    FETCHED_AT = datetime(2025, 1, 1, tzinfo=UTC)

    def test_missing_title_dropped(self):
        assert entry_to_item({"link": "https://example.com/a"}, "Feed", None, self.FETCHED_AT) is None

    def test_missing_link_dropped(self):
        assert entry_to_item({"title": "Story"}, "Feed", None, self.FETCHED_AT) is None

    def test_publish_date_defaults_to_fetch_time(self):
        item = entry_to_item({"title": "Story", "link": "https://example.com/a"}, "Feed", "src-1", self.FETCHED_AT)

        assert item.published_at == self.FETCHED_AT
        assert item.source_id == "src-1"
        assert item.source_label == "Feed"

    def test_content_falls_back_to_title(self):
        item = entry_to_item({"title": "Story", "link": "https://example.com/a"}, "Feed", None, self.FETCHED_AT)
        assert item.content == "Story"

    def test_content_prefers_snippet_of_summary(self):
        entry = {
            "title": "Story",
            "link": "https://example.com/a",
            "summary": "<p>Short <b>summary</b> text</p>",
        }
        item = entry_to_item(entry, "Feed", None, self.FETCHED_AT)
        assert item.content == "Short summary text"

    def test_parsed_date_used(self):
        entry = {
            "title": "Story",
            "link": "https://example.com/a",
            "published_parsed": time.struct_time((2024, 6, 1, 9, 30, 0, 5, 153, 0)),
        }
        item = entry_to_item(entry, "Feed", None, self.FETCHED_AT)
        assert item.published_at == datetime(2024, 6, 1, 9, 30, tzinfo=UTC)


class TestFetchFeed:
    """Tests for single-feed fetching."""

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_uses_httpx_with_timeout(self, mock_get):
        """fetch_feed should use httpx.get with the timeout parameter."""
        mock_get.return_value = mock_response(rss_document([]))

        fetch_feed(feed_url="https://example.com/feed.xml", source_label="Test", timeout=15)

        mock_get.assert_called_once()
        call_kwargs = mock_get.call_args
        assert call_kwargs.kwargs["timeout"] == 15
        assert call_kwargs.kwargs["follow_redirects"] is True

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_parses_items(self, mock_get):
        mock_get.return_value = mock_response(rss_document([
            rss_entry("LLM release", "https://example.com/1", "<p>Details</p>", "Mon, 06 Jan 2025 08:00:00 GMT"),
            rss_entry(None, "https://example.com/2"),
            rss_entry("No link", None),
        ]))

        result = fetch_feed(feed_url="https://example.com/feed.xml", source_label="Test", source_id="cat-1")

        assert result.success is True
        assert len(result.items) == 1
        item = result.items[0]
        assert item.title == "LLM release"
        assert item.content == "Details"
        assert item.topic == "LLM"
        assert item.source_id == "cat-1"
        assert item.published_at == datetime(2025, 1, 6, 8, 0, tzinfo=UTC)

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_caps_entries_per_source(self, mock_get):
        entries = [rss_entry(f"Story {i}", f"https://example.com/{i}") for i in range(40)]
        mock_get.return_value = mock_response(rss_document(entries))

        result = fetch_feed(feed_url="https://example.com/feed.xml", source_label="Test")

        assert len(result.items) == MAX_ENTRIES_PER_SOURCE
        assert result.items[0].title == "Story 0"
        assert result.entry_count == 40

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_handles_timeout_error(self, mock_get):
        """A timeout from httpx should produce a failed FeedResult, not a crash."""
        mock_get.side_effect = httpx.TimeoutException("timed out")

        result = fetch_feed(feed_url="https://example.com/slow.xml", source_label="Slow", timeout=5)

        assert result.success is False
        assert result.items == []
        assert "timed out" in result.error

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_http_error_status(self, mock_get):
        mock_get.return_value = mock_response(b"", status_code=500)

        result = fetch_feed(feed_url="https://example.com/feed.xml", source_label="Broken")

        assert result.success is False
        assert "HTTP 500" in result.error
        assert result.items == []

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_retries_with_browser_headers_on_403(self, mock_get):
        mock_get.side_effect = [
            mock_response(b"", status_code=403),
            mock_response(rss_document([rss_entry("Story", "https://example.com/1")])),
        ]

        result = fetch_feed(feed_url="https://example.com/feed.xml", source_label="Picky")

        assert result.success is True
        assert result.attempts == 2
        assert mock_get.call_count == 2
        second_headers = mock_get.call_args_list[1].kwargs["headers"]
        assert "Mozilla" in second_headers["User-Agent"]

    @patch("newsdigest.ingest.feeds.httpx.get")
    def test_unexpected_error_never_raises(self, mock_get):
        mock_get.side_effect = RuntimeError("boom")

        result = fetch_feed(feed_url="https://example.com/feed.xml", source_label="Test")

        assert result.success is False
        assert "boom" in result.error


class TestKeywordWatch:
    """Tests for keyword placeholder items."""

    def test_placeholder_shape(self):
        now = datetime(2025, 2, 1, 7, 0, tzinfo=UTC)
        source = CustomSource(
            id="c1",
            user_id="u1",
            name="Watch: diffusion",
            type=SourceType.KEYWORD,
            value="diffusion models",
        )

        item = keyword_watch_item(source, now)

        assert item.title == "Keyword watch: diffusion models"
        assert item.url == "https://www.google.com/search?q=diffusion+models"
        assert item.content == "Track new mentions and updates for diffusion models."
        assert item.published_at == now
        assert item.topic == "diffusion models"
        assert item.source_id is None
        assert item.source_label == "Watch: diffusion"


class TestSourceFetcher:
    """Tests for per-user concurrent fetching."""

    @pytest.fixture
    def db(self):
        with TemporaryDirectory() as tmpdir:
            yield Database(Path(tmpdir) / "test.db")

    @pytest.fixture
    def user_id(self, db):
        user = db.create_user(name="Ada")
        good = db.upsert_catalog_source("Good Feed", "https://good.example.com/feed")
        bad = db.upsert_catalog_source("Bad Feed", "https://bad.example.com/feed")
        unused = db.upsert_catalog_source("Unused Feed", "https://unused.example.com/feed")
        db.enable_catalog_source(user.id, good.id)
        db.enable_catalog_source(user.id, bad.id)
        db.enable_catalog_source(user.id, unused.id, enabled=False)
        db.add_custom_source(user.id, "My Blog", SourceType.RSS, "https://blog.example.com/rss")
        db.add_custom_source(user.id, "Watch", SourceType.KEYWORD, "robotics")
        db.add_custom_source(user.id, "Disabled", SourceType.KEYWORD, "ignored", is_enabled=False)
        return user.id

    @staticmethod
    def fake_fetch(feed_url, source_label, source_id=None, max_entries=15, timeout=10.0):
        if "bad" in feed_url:
            return FeedResult(feed_url=feed_url, source_label=source_label, items=[], success=False, error="HTTP 500")
        item = FetchedItem(
            source_id=source_id,
            source_label=source_label,
            title=f"From {source_label}",
            url=f"{feed_url}/item",
            published_at=datetime.now(UTC),
        )
        return FeedResult(feed_url=feed_url, source_label=source_label, items=[item], success=True)

    def test_union_of_sources_plus_keyword_placeholders(self, db, user_id):
        fetcher = SourceFetcher(db)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=self.fake_fetch):
            items = fetcher.fetch_for_user(user_id)

        titles = sorted(item.title for item in items)
        assert titles == ["From Good Feed", "From My Blog", "Keyword watch: robotics"]

    def test_catalog_items_carry_source_id_custom_do_not(self, db, user_id):
        fetcher = SourceFetcher(db)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=self.fake_fetch):
            items = {item.source_label: item for item in fetcher.fetch_for_user(user_id)}

        assert items["Good Feed"].source_id is not None
        assert items["My Blog"].source_id is None

    def test_every_source_reported_to_hook(self, db, user_id):
        results: list[FeedResult] = []
        fetcher = SourceFetcher(db, on_source_result=results.append)

        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=self.fake_fetch):
            fetcher.fetch_for_user(user_id)

        assert sorted(result.source_label for result in results) == ["Bad Feed", "Good Feed", "My Blog"]
        assert [result.source_label for result in results if not result.success] == ["Bad Feed"]

    def test_recovered_feed_no_longer_failing(self, db):
        user = db.create_user(name="Grace")
        flaky = db.upsert_catalog_source("Flaky Feed", "https://flaky.example.com/feed")
        db.enable_catalog_source(user.id, flaky.id)
        outcomes = iter([False, True, True])

        def flaky_fetch(feed_url, source_label, source_id=None, max_entries=15, timeout=10.0):
            if next(outcomes):
                return FeedResult(feed_url=feed_url, source_label=source_label, items=[], success=True)
            return FeedResult(feed_url=feed_url, source_label=source_label, items=[], success=False, error="timeout")

        def record_status(result):
            db.update_feed_status(result.feed_url, result.source_label, success=result.success, error=result.error)

        fetcher = SourceFetcher(db, on_source_result=record_status)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=flaky_fetch):
            fetcher.fetch_for_user(user.id)
            assert [row["feed_url"] for row in db.get_failing_feeds()] == ["https://flaky.example.com/feed"]

            fetcher.fetch_for_user(user.id)
            fetcher.fetch_for_user(user.id)

        assert db.get_failing_feeds() == []

    def test_failing_hook_does_not_abort(self, db, user_id):
        fetcher = SourceFetcher(db, on_source_result=Mock(side_effect=RuntimeError("hook down")))

        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=self.fake_fetch):
            items = fetcher.fetch_for_user(user_id)

        assert len(items) == 3

    def test_raising_fetch_contributes_nothing(self, db, user_id):
        def explode(feed_url, **kwargs):
            if "good" in feed_url:
                raise RuntimeError("unexpected")
            return self.fake_fetch(feed_url, **kwargs)

        fetcher = SourceFetcher(db)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=explode):
            items = fetcher.fetch_for_user(user_id)

        assert "From Good Feed" not in {item.title for item in items}

    def test_user_without_sources(self, db):
        user = db.create_user(name="Empty")
        assert SourceFetcher(db).fetch_for_user(user.id) == []
