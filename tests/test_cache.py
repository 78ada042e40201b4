"""Tests for the summary cache."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from newsdigest.storage.cache import SummaryCache, make_cache_key


class TestMakeCacheKey:
    def test_deterministic(self):
        k1 = make_cache_key("https://example.com/a", "gpt-4o-mini", "en", "SHORT")
        k2 = make_cache_key("https://example.com/a", "gpt-4o-mini", "en", "SHORT")
        assert k1 == k2

    @pytest.mark.parametrize(
        "changed",
        [
            ("https://example.com/b", "gpt-4o-mini", "en", "SHORT"),
            ("https://example.com/a", "gemini-2.5-flash", "en", "SHORT"),
            ("https://example.com/a", "gpt-4o-mini", "de", "SHORT"),
            ("https://example.com/a", "gpt-4o-mini", "en", "DETAILED"),
        ],
    )
    def test_every_component_affects_key(self, changed):
        base = make_cache_key("https://example.com/a", "gpt-4o-mini", "en", "SHORT")
        assert make_cache_key(*changed) != base

    def test_key_is_hex_string(self):
        key = make_cache_key("https://example.com/a", "gpt-4o-mini", "en", "SHORT")
        assert len(key) == 64  # SHA256 hex digest
        int(key, 16)  # should not raise


class TestSummaryCache:
    @pytest.fixture
    def cache(self):
        with TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "test.db"
            yield SummaryCache(db_path, default_ttl_days=7)

    def test_get_missing_returns_none(self, cache):
        assert cache.get("nonexistent") is None

    def test_set_then_get(self, cache):
        cache.set("key1", "A short summary.")

        assert cache.get("key1") == "A short summary."

    def test_get_expired_returns_none(self, cache):
        """Expired entries should not be returned."""
        cache.set("key1", "old", ttl_days=-1)  # already expired

        assert cache.get("key1") is None

    def test_set_overwrites_existing(self, cache):
        cache.set("key1", "first")
        cache.set("key1", "second")

        assert cache.get("key1") == "second"

    def test_clear_all(self, cache):
        cache.set("k1", "a")
        cache.set("k2", "b")

        deleted = cache.clear()

        assert deleted == 2
        assert cache.get("k1") is None

    def test_stats(self, cache):
        cache.set("k1", "a")
        cache.set("k2", "b")

        stats = cache.stats()

        assert stats["total_entries"] == 2
        assert stats["expired_entries"] == 0

    def test_shares_file_with_digest_store(self):
        """The cache table can live in the main database file."""
        from newsdigest.storage.db import Database

        with TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "newsdigest.db"
            db = Database(db_path)
            cache = SummaryCache(db_path)

            cache.set("k1", "summary")
            db.create_user(name="Ada")

            assert cache.get("k1") == "summary"
