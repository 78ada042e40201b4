"""Tests for the SQLite digest store."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from newsdigest.models import (
    DigestConfiguration,
    DigestFrequency,
    DigestLength,
    DigestStatus,
    EngagementAction,
    RankedItem,
)
from newsdigest.storage.db import (
    Database,
    DigestItemNotFoundError,
    UserNotFoundError,
    read_streak,
)

NOW = datetime(2025, 4, 15, 9, 0, tzinfo=UTC)


@pytest.fixture
def db():
    with TemporaryDirectory() as tmpdir:
        yield Database(Path(tmpdir) / "test.db")


def ranked(title: str, topic: str | None = None, source_label: str = "Feed", score: float = 1.0) -> RankedItem:
    return RankedItem(
        source_id=None,
        source_label=source_label,
        title=title,
        url=f"https://example.com/{title.replace(' ', '-').lower()}",
        content=f"{title} body",
        published_at=NOW,
        topic=topic,
        score=score,
    )


def make_digest(db: Database, user_id: str, items: list[RankedItem], generated_at: datetime = NOW) -> str:
    digest_id = db.create_digest(user_id, generated_at=generated_at)
    for position, item in enumerate(items):
        db.add_digest_item(digest_id, item, summary=f"Summary of {item.title}", position=position)
    return digest_id


class TestUsers:
    """Tests for accounts and preferences."""

    def test_create_and_get(self, db):
        user = db.create_user(name="Ada", email="ada@example.com")

        loaded = db.get_user(user.id)

        assert loaded.name == "Ada"
        assert loaded.email == "ada@example.com"

    def test_unknown_user_raises(self, db):
        with pytest.raises(UserNotFoundError):
            db.get_user("missing")

    def test_keywords_are_unique_and_sorted(self, db):
        user = db.create_user()
        db.add_keyword(user.id, "robots")
        db.add_keyword(user.id, " llm ")
        db.add_keyword(user.id, "robots")

        assert db.get_keywords(user.id) == ["llm", "robots"]

    def test_preferences_round_trip_and_update(self, db):
        user = db.create_user()
        assert db.get_preferences(user.id) is None

        db.save_preferences(user.id, DigestConfiguration(frequency=DigestFrequency.WEEKLY, weekly_day=3))
        db.save_preferences(
            user.id,
            DigestConfiguration(
                frequency=DigestFrequency.TWICE_DAILY,
                delivery_time="7:30",
                timezone="Europe/Berlin",
                digest_length=DigestLength.BRIEF,
            ),
        )

        prefs = db.get_preferences(user.id)
        assert prefs.frequency == DigestFrequency.TWICE_DAILY
        assert prefs.delivery_time == "07:30"
        assert prefs.timezone == "Europe/Berlin"
        assert prefs.weekly_day is None
        assert db.list_users_with_preferences() == [(user.id, prefs)]

    def test_new_primary_email_demotes_old(self, db):
        user = db.create_user()
        db.add_delivery_email(user.id, "old@example.com")
        db.add_delivery_email(user.id, "backup@example.com", primary=False)
        db.add_delivery_email(user.id, "new@example.com")

        assert db.get_primary_email(user.id) == "new@example.com"

    def test_no_primary_email(self, db):
        user = db.create_user()
        db.add_delivery_email(user.id, "backup@example.com", primary=False)

        assert db.get_primary_email(user.id) is None


class TestSources:
    """Tests for catalog and custom sources."""

    def test_catalog_upsert_keeps_id(self, db):
        first = db.upsert_catalog_source("Old Name", "https://example.com/feed", "News")
        second = db.upsert_catalog_source("New Name", "https://example.com/feed", "Research")

        assert first.id == second.id
        assert second.name == "New Name"
        assert len(db.list_catalog_sources()) == 1

    def test_enable_and_disable(self, db):
        user = db.create_user()
        source = db.upsert_catalog_source("Feed", "https://example.com/feed")

        db.enable_catalog_source(user.id, source.id)
        assert [s.id for s in db.get_enabled_catalog_sources(user.id)] == [source.id]

        db.enable_catalog_source(user.id, source.id, enabled=False)
        assert db.get_enabled_catalog_sources(user.id) == []

    def test_feed_status_counts_consecutive_failures(self, db):
        db.update_feed_status("https://example.com/feed", "Feed", success=False, error="HTTP 500")
        db.update_feed_status("https://example.com/feed", "Feed", success=False, error="HTTP 502")

        [row] = db.get_failing_feeds()
        assert row["consecutive_failures"] == 2
        assert row["last_error"] == "HTTP 502"

        db.update_feed_status("https://example.com/feed", "Feed", success=True)
        assert db.get_failing_feeds() == []


class TestDigests:
    """Tests for digest persistence and search."""

    def test_items_come_back_in_rank_order(self, db):
        user = db.create_user()
        titles = ["Zeta story", "Alpha story", "Mid story"]
        digest_id = make_digest(db, user.id, [ranked(t, score=3 - i) for i, t in enumerate(titles)])

        digest = db.get_digest(digest_id)

        assert digest.status == DigestStatus.PENDING
        assert [item.title for item in digest.items] == titles
        assert digest.items[0].summary == "Summary of Zeta story"

    def test_status_transition(self, db):
        user = db.create_user()
        digest_id = make_digest(db, user.id, [])

        db.update_digest_status(digest_id, DigestStatus.SENT, sent_at=NOW, email_id="msg-1")

        digest = db.get_digest(digest_id)
        assert digest.status == DigestStatus.SENT
        assert digest.sent_at == NOW

    def test_get_digest_scoped_to_user(self, db):
        owner = db.create_user()
        other = db.create_user()
        digest_id = make_digest(db, owner.id, [])

        assert db.get_digest(digest_id, user_id=other.id) is None
        assert db.get_digest(digest_id, user_id=owner.id) is not None

    def test_list_newest_first(self, db):
        user = db.create_user()
        older = make_digest(db, user.id, [], generated_at=NOW - timedelta(days=1))
        newer = make_digest(db, user.id, [], generated_at=NOW)

        assert [d.id for d in db.list_digests(user.id)] == [newer, older]

    def test_search_matches_title_summary_or_topic(self, db):
        user = db.create_user()
        llm = make_digest(db, user.id, [ranked("Model launch", topic="LLM")])
        robots = make_digest(db, user.id, [ranked("Robot arms")], generated_at=NOW - timedelta(hours=1))

        assert [d.id for d in db.list_digests(user.id, search="llm")] == [llm]
        assert [d.id for d in db.list_digests(user.id, search="ROBOT")] == [robots]
        assert [d.id for d in db.list_digests(user.id, search="summary of")] == [llm, robots]
        assert db.list_digests(user.id, search="quantum") == []


class TestEngagement:
    """Tests for reads, bookmarks and analytics."""

    @pytest.fixture
    def setup(self, db):
        user = db.create_user()
        digest_id = make_digest(
            db,
            user.id,
            [
                ranked("LLM one", topic="LLM", source_label="Lab Blog"),
                ranked("LLM two", topic="LLM", source_label="Lab Blog"),
                ranked("Robot one", topic="Robotics", source_label="Tech News"),
            ],
        )
        items = db.get_digest(digest_id).items
        return user, digest_id, items

    def test_mark_read_sets_timestamp(self, db, setup):
        user, digest_id, items = setup

        db.mark_read(user.id, items[0].id, at=NOW)

        assert db.get_digest(digest_id).items[0].read_at == NOW

    def test_bookmark_idempotent_and_removable(self, db, setup):
        user, digest_id, items = setup

        db.bookmark_item(user.id, items[1].id)
        db.bookmark_item(user.id, items[1].id)

        assert db.get_digest(digest_id).items[1].is_bookmarked is True
        assert db.analytics(user.id, now=NOW).bookmark_count == 1

        db.unbookmark_item(user.id, items[1].id)
        assert db.get_digest(digest_id).items[1].is_bookmarked is False

    def test_other_users_item_rejected(self, db, setup):
        _, _, items = setup
        stranger = db.create_user()

        with pytest.raises(DigestItemNotFoundError):
            db.mark_read(stranger.id, items[0].id)
        with pytest.raises(DigestItemNotFoundError):
            db.bookmark_item(stranger.id, items[0].id)
        with pytest.raises(DigestItemNotFoundError):
            db.track_engagement(stranger.id, items[0].id, EngagementAction.CLICK)

    def test_analytics(self, db, setup):
        user, _, items = setup
        db.mark_read(user.id, items[0].id, at=NOW - timedelta(days=1))
        db.mark_read(user.id, items[1].id, at=NOW)
        db.mark_read(user.id, items[2].id, at=NOW)
        db.track_engagement(user.id, items[2].id, EngagementAction.CLICK, at=NOW)

        stats = db.analytics(user.id, now=NOW)

        assert stats.read_count == 3
        assert [(t.topic, t.count) for t in stats.top_topics] == [("LLM", 2), ("Robotics", 1)]
        assert [(s.source, s.count) for s in stats.most_read_sources] == [("Lab Blog", 2), ("Tech News", 1)]
        assert stats.streak_days == 2

    def test_empty_analytics(self, db):
        user = db.create_user()

        stats = db.analytics(user.id, now=NOW)

        assert stats.read_count == 0
        assert stats.top_topics == []
        assert stats.streak_days == 0


class TestReadStreak:
    """Tests for consecutive reading days."""

    def test_counts_back_from_today(self):
        today = NOW.date()
        days = {today, today - timedelta(days=1), today - timedelta(days=2), today - timedelta(days=4)}
        assert read_streak(days, NOW) == 3

    def test_no_read_today_is_zero(self):
        assert read_streak({NOW.date() - timedelta(days=1)}, NOW) == 0
