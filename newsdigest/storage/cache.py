"""SQLite-backed summary cache with TTL."""

import hashlib
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Generator

from newsdigest.logging_config import get_logger

logger = get_logger("cache")


def make_cache_key(url: str, model: str, language: str, depth: str) -> str:
    """Build a deterministic cache key for one summary request."""
    raw = f"{url}:{model}:{language}:{depth}"
    return hashlib.sha256(raw.encode()).hexdigest()


class SummaryCache:
    """Summaries keyed by (url, model, language, depth) with TTL expiration."""

    def __init__(self, db_path: Path, default_ttl_days: int = 7):
        self.db_path = db_path
        self.default_ttl_days = default_ttl_days
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS summary_cache (
                    key TEXT PRIMARY KEY,
                    summary TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    expires_at TEXT NOT NULL
                );
            """)

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        """Get a cached summary. Returns None if missing or expired."""
        now = datetime.now(UTC).isoformat()
        with self._connection() as conn:
            row = conn.execute(
                "SELECT summary FROM summary_cache WHERE key = ? AND expires_at > ?",
                (key, now),
            ).fetchone()
        if row is None:
            return None
        logger.debug(f"Cache hit: {key[:12]}")
        return row["summary"]

    def set(self, key: str, summary: str, ttl_days: int | None = None) -> None:
        """Store a summary with TTL. Overwrites existing entries."""
        ttl = ttl_days if ttl_days is not None else self.default_ttl_days
        now = datetime.now(UTC)
        with self._connection() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO summary_cache (key, summary, expires_at)
                   VALUES (?, ?, ?)""",
                (key, summary, (now + timedelta(days=ttl)).isoformat()),
            )
            # Lazy cleanup of expired rows
            conn.execute(
                "DELETE FROM summary_cache WHERE expires_at <= ?",
                (now.isoformat(),),
            )

    def clear(self) -> int:
        """Delete all cached summaries. Returns count deleted."""
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM summary_cache")
            return cursor.rowcount

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        now = datetime.now(UTC).isoformat()
        with self._connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM summary_cache").fetchone()[0]
            expired = conn.execute(
                "SELECT COUNT(*) FROM summary_cache WHERE expires_at <= ?", (now,)
            ).fetchone()[0]
        return {
            "total_entries": total,
            "expired_entries": expired,
        }
