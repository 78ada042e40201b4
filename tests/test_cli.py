"""Tests for the command line interface."""

import sqlite3
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from newsdigest import config
from newsdigest.cli import app
from newsdigest.ingest import FeedResult
from newsdigest.models import DigestFrequency, DigestStatus, FetchedItem
from newsdigest.storage.db import Database

runner = CliRunner()

CATALOG = """sources:
  Lab Blog:
    url: https://lab.example.com/feed.xml
    category: Research
  News Wire:
    url: https://news.example.com/rss
    category: News
"""


def fake_fetch(feed_url, source_label, source_id=None, max_entries=15, timeout=10.0):
    item = FetchedItem(
        source_id=source_id,
        source_label=source_label,
        title="LLM evaluation roundup",
        url=f"{feed_url}/llm-roundup",
        content="Benchmarks moved again this week.",
        published_at=datetime.now(UTC),
    )
    return FeedResult(feed_url=feed_url, source_label=source_label, items=[item], success=True)


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "sources.yaml").write_text(CATALOG)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    for name in ("LLM_API_KEY", "RESEND_API_KEY", "LLM_PROVIDER", "LLM_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_settings", None)
    return tmp_path


@pytest.fixture
def db(settings_env) -> Database:
    return Database(settings_env / "data" / "newsdigest.db")


def invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


def create_user(db: Database) -> str:
    invoke("sources", "--sync")
    invoke(
        "users", "add",
        "--name", "Ada",
        "--email", "ada@example.com",
        "-k", "llm",
        "-s", "Lab Blog",
    )
    [user] = db.list_users()
    return user.id


class TestUserSetup:
    def test_sync_and_add_user(self, db):
        user_id = create_user(db)

        assert db.get_keywords(user_id) == ["llm"]
        assert db.get_primary_email(user_id) == "ada@example.com"
        assert [s.name for s in db.get_enabled_catalog_sources(user_id)] == ["Lab Blog"]
        assert db.get_preferences(user_id) is not None

    def test_update_preferences(self, db):
        user_id = create_user(db)

        invoke("users", "prefs", "--user", user_id, "--frequency", "weekly", "--weekly-day", "3", "--time", "7:30")

        prefs = db.get_preferences(user_id)
        assert prefs.frequency == DigestFrequency.WEEKLY
        assert prefs.weekly_day == 3
        assert prefs.delivery_time == "07:30"

    def test_invalid_timezone_rejected(self, db):
        user_id = create_user(db)

        result = runner.invoke(app, ["users", "prefs", "--user", user_id, "--timezone", "Mars/Olympus"])

        assert result.exit_code == 1
        assert db.get_preferences(user_id).timezone == "UTC"


class TestRun:
    def test_run_generates_and_mock_sends(self, db):
        user_id = create_user(db)

        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=fake_fetch):
            invoke("run", "--user", user_id, "--format", "text")

        [digest] = db.list_digests(user_id)
        assert digest.status == DigestStatus.SENT
        assert [item.title for item in digest.items] == ["LLM evaluation roundup"]
        assert digest.items[0].summary.startswith("LLM evaluation roundup: Benchmarks")

    def test_unknown_user_exits_nonzero(self, settings_env):
        result = runner.invoke(app, ["run", "--user", "missing"])

        assert result.exit_code == 1
        assert "User not found" in result.output

    def test_read_and_bookmark(self, db):
        user_id = create_user(db)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=fake_fetch):
            invoke("run", "--user", user_id, "--format", "json")
        [digest] = db.list_digests(user_id)
        item_id = digest.items[0].id

        invoke("read", "--user", user_id, item_id)
        invoke("bookmark", "--user", user_id, item_id)

        stats = db.analytics(user_id)
        assert stats.read_count == 1
        assert stats.bookmark_count == 1

    def test_track_share(self, db):
        user_id = create_user(db)
        with patch("newsdigest.ingest.sources.fetch_feed", side_effect=fake_fetch):
            invoke("run", "--user", user_id, "--format", "json")
        [digest] = db.list_digests(user_id)
        item_id = digest.items[0].id

        invoke("track", "--user", user_id, item_id, "--action", "share")

        with sqlite3.connect(db.db_path) as conn:
            actions = [row[0] for row in conn.execute("SELECT action FROM engagement_log")]
        assert actions == ["SHARE"]

    def test_track_rejects_read(self, db):
        user_id = create_user(db)

        result = runner.invoke(app, ["track", "--user", user_id, "anything", "--action", "read"])

        assert result.exit_code == 1

    def test_bookmark_unknown_item(self, db):
        user_id = create_user(db)

        result = runner.invoke(app, ["bookmark", "--user", user_id, "nope"])

        assert result.exit_code == 1


class TestMisc:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "newsdigest v" in result.output

    def test_tick_with_nobody_due(self, db):
        create_user(db)

        result = invoke("tick", "--at", "2025-01-06T03:17:00Z")

        assert "0 due" in result.output

    def test_schedule_prints_cron_line(self, settings_env):
        result = invoke("schedule", "--runner", "newsdigest")

        assert "* * * * *" in result.output
