"""
SQLite database operations for users, sources and digests.

Design decisions:
- Single file database for simplicity
- WAL mode so concurrent digest-item writes from worker threads don't block readers
- One connection per operation; safe to share a Database across threads
- Indexes on common query patterns
"""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Generator

from dateutil.parser import parse as parse_date

from newsdigest.models import (
    CatalogSource,
    CustomSource,
    Digest,
    DigestAnalytics,
    DigestConfiguration,
    DigestItem,
    DigestStatus,
    EngagementAction,
    RankedItem,
    SourceCount,
    SourceType,
    TopicCount,
    UserAccount,
)

STREAK_LOOKBACK_READS = 90
ANALYTICS_TOP_N = 5


class UserNotFoundError(LookupError):
    """Raised when a user id has no matching account."""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class DigestItemNotFoundError(LookupError):
    """Raised when a digest item doesn't exist or belongs to another user."""

    def __init__(self, item_id: str):
        super().__init__(f"Digest item not found: {item_id}")
        self.item_id = item_id


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = parse_date(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class Database:
    """SQLite database wrapper for the digest store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    email TEXT UNIQUE,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS user_keywords (
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    keyword TEXT NOT NULL,
                    PRIMARY KEY (user_id, keyword)
                );

                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                    frequency TEXT NOT NULL,
                    delivery_time TEXT NOT NULL,
                    timezone TEXT NOT NULL,
                    weekly_day INTEGER,
                    digest_length TEXT NOT NULL,
                    summary_depth TEXT NOT NULL,
                    language TEXT NOT NULL,
                    is_paused INTEGER DEFAULT 0,
                    resume_date TEXT,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS delivery_emails (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    email TEXT NOT NULL,
                    is_primary INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS catalog_sources (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    url TEXT NOT NULL UNIQUE,
                    category TEXT DEFAULT 'Uncategorized',
                    type TEXT DEFAULT 'RSS'
                );

                CREATE TABLE IF NOT EXISTS user_sources (
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    source_id TEXT NOT NULL REFERENCES catalog_sources(id) ON DELETE CASCADE,
                    is_enabled INTEGER DEFAULT 1,
                    PRIMARY KEY (user_id, source_id)
                );

                CREATE TABLE IF NOT EXISTS custom_sources (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    value TEXT NOT NULL,
                    is_enabled INTEGER DEFAULT 1,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS digests (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    generated_at TEXT NOT NULL,
                    sent_at TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    email_id TEXT  -- From Resend
                );

                CREATE TABLE IF NOT EXISTS digest_items (
                    id TEXT PRIMARY KEY,
                    digest_id TEXT NOT NULL REFERENCES digests(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    source_id TEXT,
                    source_label TEXT NOT NULL,
                    title TEXT NOT NULL,
                    url TEXT NOT NULL,
                    summary TEXT NOT NULL,
                    published_at TEXT NOT NULL,
                    relevance_score REAL NOT NULL,
                    topic TEXT,
                    read_at TEXT
                );

                CREATE TABLE IF NOT EXISTS bookmarks (
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    digest_item_id TEXT NOT NULL REFERENCES digest_items(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, digest_item_id)
                );

                CREATE TABLE IF NOT EXISTS engagement_log (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    digest_item_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                -- Feed status tracking
                CREATE TABLE IF NOT EXISTS feed_status (
                    feed_url TEXT PRIMARY KEY,
                    feed_name TEXT NOT NULL,
                    last_checked TEXT,
                    last_success TEXT,
                    last_error TEXT,
                    consecutive_failures INTEGER DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_digests_user
                    ON digests(user_id, generated_at DESC);
                CREATE INDEX IF NOT EXISTS idx_digest_items_digest
                    ON digest_items(digest_id, position);
                CREATE INDEX IF NOT EXISTS idx_engagement_user_action
                    ON engagement_log(user_id, action, created_at DESC);
                CREATE INDEX IF NOT EXISTS idx_custom_sources_user
                    ON custom_sources(user_id);
            """)

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # -- users -----------------------------------------------------------

    def create_user(
        self,
        name: str | None = None,
        email: str | None = None,
        user_id: str | None = None,
    ) -> UserAccount:
        """Create a user account."""
        user = UserAccount(id=user_id or _new_id(), name=name, email=email, created_at=_now())
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO users (id, name, email, created_at) VALUES (?, ?, ?, ?)",
                (user.id, user.name, user.email, user.created_at.isoformat()),
            )
        return user

    def get_user(self, user_id: str) -> UserAccount:
        """Load a user. Raises UserNotFoundError if there is none."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        return UserAccount(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            created_at=_parse(row["created_at"]),
        )

    def list_users(self) -> list[UserAccount]:
        with self._connection() as conn:
            rows = conn.execute("SELECT id FROM users ORDER BY created_at").fetchall()
        return [self.get_user(row["id"]) for row in rows]

    # -- interests and preferences ---------------------------------------

    def add_keyword(self, user_id: str, keyword: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO user_keywords (user_id, keyword) VALUES (?, ?)",
                (user_id, keyword.strip()),
            )

    def get_keywords(self, user_id: str) -> list[str]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT keyword FROM user_keywords WHERE user_id = ? ORDER BY keyword",
                (user_id,),
            ).fetchall()
        return [row["keyword"] for row in rows]

    def save_preferences(self, user_id: str, config: DigestConfiguration) -> None:
        """Insert or replace a user's delivery preferences."""
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO user_preferences (
                    user_id, frequency, delivery_time, timezone, weekly_day,
                    digest_length, summary_depth, language, is_paused,
                    resume_date, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    frequency = excluded.frequency,
                    delivery_time = excluded.delivery_time,
                    timezone = excluded.timezone,
                    weekly_day = excluded.weekly_day,
                    digest_length = excluded.digest_length,
                    summary_depth = excluded.summary_depth,
                    language = excluded.language,
                    is_paused = excluded.is_paused,
                    resume_date = excluded.resume_date,
                    updated_at = excluded.updated_at
            """, (
                user_id,
                config.frequency.value,
                config.delivery_time,
                config.timezone,
                config.weekly_day,
                config.digest_length.value,
                config.summary_depth.value,
                config.language,
                int(config.is_paused),
                _iso(config.resume_date),
                _now().isoformat(),
            ))

    def get_preferences(self, user_id: str) -> DigestConfiguration | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        return self._row_to_preferences(row) if row else None

    def list_users_with_preferences(self) -> list[tuple[str, DigestConfiguration]]:
        """All (user_id, preferences) pairs, for the scheduler tick."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM user_preferences ORDER BY user_id"
            ).fetchall()
        return [(row["user_id"], self._row_to_preferences(row)) for row in rows]

    def _row_to_preferences(self, row: sqlite3.Row) -> DigestConfiguration:
        return DigestConfiguration(
            frequency=row["frequency"],
            delivery_time=row["delivery_time"],
            timezone=row["timezone"],
            weekly_day=row["weekly_day"],
            digest_length=row["digest_length"],
            summary_depth=row["summary_depth"],
            language=row["language"],
            is_paused=bool(row["is_paused"]),
            resume_date=_parse(row["resume_date"]),
        )

    def add_delivery_email(self, user_id: str, email: str, primary: bool = True) -> str:
        """Add a delivery address. A new primary address demotes the old one."""
        email_id = _new_id()
        with self._connection() as conn:
            if primary:
                conn.execute(
                    "UPDATE delivery_emails SET is_primary = 0 WHERE user_id = ?",
                    (user_id,),
                )
            conn.execute(
                """INSERT INTO delivery_emails (id, user_id, email, is_primary, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (email_id, user_id, email, int(primary), _now().isoformat()),
            )
        return email_id

    def get_primary_email(self, user_id: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute(
                """SELECT email FROM delivery_emails
                   WHERE user_id = ? AND is_primary = 1
                   ORDER BY created_at DESC LIMIT 1""",
                (user_id,),
            ).fetchone()
        return row["email"] if row else None

    # -- sources ---------------------------------------------------------

    def upsert_catalog_source(
        self,
        name: str,
        url: str,
        category: str = "Uncategorized",
    ) -> CatalogSource:
        """Insert a catalog source, or refresh name/category of an existing URL."""
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO catalog_sources (id, name, url, category, type)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    name = excluded.name,
                    category = excluded.category
            """, (_new_id(), name, url, category, SourceType.RSS.value))
            row = conn.execute(
                "SELECT * FROM catalog_sources WHERE url = ?", (url,)
            ).fetchone()
        return self._row_to_catalog_source(row)

    def list_catalog_sources(self) -> list[CatalogSource]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM catalog_sources ORDER BY category, name"
            ).fetchall()
        return [self._row_to_catalog_source(row) for row in rows]

    def enable_catalog_source(self, user_id: str, source_id: str, enabled: bool = True) -> None:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO user_sources (user_id, source_id, is_enabled)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id, source_id) DO UPDATE SET
                    is_enabled = excluded.is_enabled
            """, (user_id, source_id, int(enabled)))

    def get_enabled_catalog_sources(self, user_id: str) -> list[CatalogSource]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT c.* FROM catalog_sources c
                JOIN user_sources us ON us.source_id = c.id
                WHERE us.user_id = ? AND us.is_enabled = 1
                ORDER BY c.name
            """, (user_id,)).fetchall()
        return [self._row_to_catalog_source(row) for row in rows]

    def _row_to_catalog_source(self, row: sqlite3.Row) -> CatalogSource:
        return CatalogSource(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            category=row["category"],
            type=SourceType(row["type"]),
        )

    def add_custom_source(
        self,
        user_id: str,
        name: str,
        type: SourceType,
        value: str,
        is_enabled: bool = True,
    ) -> CustomSource:
        source = CustomSource(
            id=_new_id(),
            user_id=user_id,
            name=name,
            type=type,
            value=value,
            is_enabled=is_enabled,
        )
        with self._connection() as conn:
            conn.execute(
                """INSERT INTO custom_sources (id, user_id, name, type, value, is_enabled, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    source.id,
                    user_id,
                    name,
                    source.type.value,
                    value,
                    int(is_enabled),
                    _now().isoformat(),
                ),
            )
        return source

    def get_enabled_custom_sources(self, user_id: str) -> list[CustomSource]:
        with self._connection() as conn:
            rows = conn.execute(
                """SELECT * FROM custom_sources
                   WHERE user_id = ? AND is_enabled = 1
                   ORDER BY created_at""",
                (user_id,),
            ).fetchall()
        return [
            CustomSource(
                id=row["id"],
                user_id=row["user_id"],
                name=row["name"],
                type=SourceType(row["type"]),
                value=row["value"],
                is_enabled=bool(row["is_enabled"]),
            )
            for row in rows
        ]

    def update_feed_status(
        self,
        feed_url: str,
        feed_name: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Track feed fetch status."""
        with self._connection() as conn:
            now = _now().isoformat()

            if success:
                conn.execute("""
                    INSERT INTO feed_status (feed_url, feed_name, last_checked, last_success, consecutive_failures)
                    VALUES (?, ?, ?, ?, 0)
                    ON CONFLICT(feed_url) DO UPDATE SET
                        feed_name = excluded.feed_name,
                        last_checked = excluded.last_checked,
                        last_success = excluded.last_success,
                        consecutive_failures = 0
                """, (feed_url, feed_name, now, now))
            else:
                conn.execute("""
                    INSERT INTO feed_status (feed_url, feed_name, last_checked, last_error, consecutive_failures)
                    VALUES (?, ?, ?, ?, 1)
                    ON CONFLICT(feed_url) DO UPDATE SET
                        feed_name = excluded.feed_name,
                        last_checked = excluded.last_checked,
                        last_error = excluded.last_error,
                        consecutive_failures = consecutive_failures + 1
                """, (feed_url, feed_name, now, error))

    def get_failing_feeds(self, min_failures: int = 1) -> list[sqlite3.Row]:
        """Feeds whose most recent fetches failed, worst first."""
        with self._connection() as conn:
            return conn.execute("""
                SELECT * FROM feed_status
                WHERE consecutive_failures >= ?
                ORDER BY consecutive_failures DESC, feed_name
            """, (min_failures,)).fetchall()

    # -- digests ---------------------------------------------------------

    def create_digest(self, user_id: str, generated_at: datetime | None = None) -> str:
        """Create an empty PENDING digest and return its id."""
        digest_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO digests (id, user_id, generated_at, status) VALUES (?, ?, ?, ?)",
                (
                    digest_id,
                    user_id,
                    (generated_at or _now()).isoformat(),
                    DigestStatus.PENDING.value,
                ),
            )
        return digest_id

    def add_digest_item(
        self,
        digest_id: str,
        item: RankedItem,
        summary: str,
        position: int,
    ) -> str:
        """Persist one ranked item of a digest at its rank position."""
        item_id = _new_id()
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO digest_items (
                    id, digest_id, position, source_id, source_label, title,
                    url, summary, published_at, relevance_score, topic
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                item_id,
                digest_id,
                position,
                item.source_id,
                item.source_label,
                item.title,
                item.url,
                summary,
                item.published_at.isoformat(),
                item.score,
                item.topic,
            ))
        return item_id

    def update_digest_status(
        self,
        digest_id: str,
        status: DigestStatus,
        sent_at: datetime | None = None,
        email_id: str | None = None,
    ) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE digests SET status = ?, sent_at = ?, email_id = ? WHERE id = ?",
                (status.value, _iso(sent_at), email_id, digest_id),
            )

    def get_digest(self, digest_id: str, user_id: str | None = None) -> Digest | None:
        """Load a digest with its items in rank order."""
        with self._connection() as conn:
            if user_id:
                row = conn.execute(
                    "SELECT * FROM digests WHERE id = ? AND user_id = ?",
                    (digest_id, user_id),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT * FROM digests WHERE id = ?", (digest_id,)
                ).fetchone()
            if row is None:
                return None
            return self._load_digest(conn, row)

    def list_digests(
        self,
        user_id: str,
        search: str | None = None,
        limit: int = 100,
    ) -> list[Digest]:
        """
        A user's digests, newest first.

        With a search term, only digests with at least one item whose
        title, summary or topic contains it (case-insensitive) are returned.
        """
        with self._connection() as conn:
            if search:
                pattern = f"%{search.lower()}%"
                rows = conn.execute("""
                    SELECT d.* FROM digests d
                    WHERE d.user_id = ? AND EXISTS (
                        SELECT 1 FROM digest_items i
                        WHERE i.digest_id = d.id AND (
                            LOWER(i.title) LIKE ?
                            OR LOWER(i.summary) LIKE ?
                            OR LOWER(COALESCE(i.topic, '')) LIKE ?
                        )
                    )
                    ORDER BY d.generated_at DESC
                    LIMIT ?
                """, (user_id, pattern, pattern, pattern, limit)).fetchall()
            else:
                rows = conn.execute("""
                    SELECT * FROM digests
                    WHERE user_id = ?
                    ORDER BY generated_at DESC
                    LIMIT ?
                """, (user_id, limit)).fetchall()
            return [self._load_digest(conn, row) for row in rows]

    def _load_digest(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Digest:
        item_rows = conn.execute("""
            SELECT i.*, b.digest_item_id IS NOT NULL AS is_bookmarked
            FROM digest_items i
            LEFT JOIN bookmarks b
                ON b.digest_item_id = i.id AND b.user_id = ?
            WHERE i.digest_id = ?
            ORDER BY i.position
        """, (row["user_id"], row["id"])).fetchall()

        return Digest(
            id=row["id"],
            user_id=row["user_id"],
            generated_at=_parse(row["generated_at"]),
            sent_at=_parse(row["sent_at"]),
            status=DigestStatus(row["status"]),
            items=[self._row_to_digest_item(item_row) for item_row in item_rows],
        )

    def _row_to_digest_item(self, row: sqlite3.Row) -> DigestItem:
        return DigestItem(
            id=row["id"],
            source_id=row["source_id"],
            source_label=row["source_label"],
            title=row["title"],
            url=row["url"],
            summary=row["summary"],
            published_at=_parse(row["published_at"]),
            relevance_score=row["relevance_score"],
            topic=row["topic"],
            read_at=_parse(row["read_at"]),
            is_bookmarked=bool(row["is_bookmarked"]),
        )

    # -- engagement ------------------------------------------------------

    def _ensure_owned_item(self, conn: sqlite3.Connection, user_id: str, item_id: str) -> None:
        owned = conn.execute("""
            SELECT 1 FROM digest_items i
            JOIN digests d ON d.id = i.digest_id
            WHERE i.id = ? AND d.user_id = ?
        """, (item_id, user_id)).fetchone()
        if owned is None:
            raise DigestItemNotFoundError(item_id)

    def _log_engagement(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        item_id: str,
        action: EngagementAction,
        at: datetime,
    ) -> None:
        conn.execute(
            """INSERT INTO engagement_log (id, user_id, digest_item_id, action, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (_new_id(), user_id, item_id, action.value, at.isoformat()),
        )

    def mark_read(self, user_id: str, item_id: str, at: datetime | None = None) -> None:
        at = at or _now()
        with self._connection() as conn:
            self._ensure_owned_item(conn, user_id, item_id)
            conn.execute(
                "UPDATE digest_items SET read_at = ? WHERE id = ?",
                (at.isoformat(), item_id),
            )
            self._log_engagement(conn, user_id, item_id, EngagementAction.READ, at)

    def bookmark_item(self, user_id: str, item_id: str) -> None:
        """Bookmark an item. Bookmarking twice keeps a single bookmark."""
        at = _now()
        with self._connection() as conn:
            self._ensure_owned_item(conn, user_id, item_id)
            conn.execute(
                """INSERT OR IGNORE INTO bookmarks (user_id, digest_item_id, created_at)
                   VALUES (?, ?, ?)""",
                (user_id, item_id, at.isoformat()),
            )
            self._log_engagement(conn, user_id, item_id, EngagementAction.BOOKMARK, at)

    def unbookmark_item(self, user_id: str, item_id: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM bookmarks WHERE user_id = ? AND digest_item_id = ?",
                (user_id, item_id),
            )

    def track_engagement(
        self,
        user_id: str,
        item_id: str,
        action: EngagementAction,
        at: datetime | None = None,
    ) -> None:
        with self._connection() as conn:
            self._ensure_owned_item(conn, user_id, item_id)
            self._log_engagement(conn, user_id, item_id, action, at or _now())

    def analytics(self, user_id: str, now: datetime | None = None) -> DigestAnalytics:
        """Reading statistics: counts, top topics and sources, read streak."""
        now = now or _now()
        with self._connection() as conn:
            read_count = conn.execute(
                "SELECT COUNT(*) FROM engagement_log WHERE user_id = ? AND action = ?",
                (user_id, EngagementAction.READ.value),
            ).fetchone()[0]
            bookmark_count = conn.execute(
                "SELECT COUNT(*) FROM bookmarks WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
            topic_rows = conn.execute("""
                SELECT i.topic, COUNT(*) AS count
                FROM digest_items i
                JOIN digests d ON d.id = i.digest_id
                WHERE d.user_id = ? AND i.read_at IS NOT NULL AND i.topic IS NOT NULL
                GROUP BY i.topic
                ORDER BY count DESC, i.topic
                LIMIT ?
            """, (user_id, ANALYTICS_TOP_N)).fetchall()
            source_rows = conn.execute("""
                SELECT COALESCE(i.source_label, 'Unknown') AS source, COUNT(*) AS count
                FROM engagement_log e
                LEFT JOIN digest_items i ON i.id = e.digest_item_id
                WHERE e.user_id = ? AND e.action = ?
                GROUP BY source
                ORDER BY count DESC, source
                LIMIT ?
            """, (user_id, EngagementAction.READ.value, ANALYTICS_TOP_N)).fetchall()
            read_times = conn.execute("""
                SELECT created_at FROM engagement_log
                WHERE user_id = ? AND action = ?
                ORDER BY created_at DESC
                LIMIT ?
            """, (user_id, EngagementAction.READ.value, STREAK_LOOKBACK_READS)).fetchall()

        read_days = {_parse(row["created_at"]).astimezone(UTC).date() for row in read_times}

        return DigestAnalytics(
            read_count=read_count,
            bookmark_count=bookmark_count,
            top_topics=[TopicCount(topic=row["topic"], count=row["count"]) for row in topic_rows],
            most_read_sources=[
                SourceCount(source=row["source"], count=row["count"]) for row in source_rows
            ],
            streak_days=read_streak(read_days, now),
        )


def read_streak(read_days: set[date], now: datetime) -> int:
    """Consecutive UTC days with at least one read, ending today."""
    streak = 0
    cursor = now.astimezone(UTC).date()
    while cursor in read_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak
