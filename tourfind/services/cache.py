"""
Dataset Cache - Persist the normalized external dataset between sessions.

One SQLite row per storage key:
  storage_key  TEXT PRIMARY KEY
  rows         TEXT     JSON list of normalized rows
  fetched_at   INTEGER  unix timestamp of the fetch

Entries older than the caller's max age are treated as a miss. Database
errors are logged and also treated as a miss; the cache never blocks a
build.
"""

import json
import sqlite3
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from tourfind.index.models import ExternalRow


def default_cache_path() -> Path:
    """Database location (XDG standard)."""
    return Path.home() / ".local" / "share" / "tourfind" / "dataset_cache.db"


class DatasetCache:
    """SQLite-backed cache of external dataset rows."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else default_cache_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Persistent connection with WAL mode
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_database()
        logger.debug(f"DatasetCache initialized with db at {self.db_path}")

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        cursor = self._conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS dataset_cache (
                storage_key TEXT PRIMARY KEY,
                rows TEXT NOT NULL,
                fetched_at INTEGER NOT NULL
            )
        """)
        self._conn.commit()

    def load(self, storage_key: str, max_age_seconds: float) -> Optional[list[ExternalRow]]:
        """
        Read cached rows.

        Args:
            storage_key: Cache key from the external data settings
            max_age_seconds: Entries older than this are ignored

        Returns:
            List of rows, or None on a miss (absent, stale, unreadable)
        """
        try:
            cursor = self._conn.cursor()
            cursor.execute(
                "SELECT rows, fetched_at FROM dataset_cache WHERE storage_key = ?",
                (storage_key,),
            )
            row = cursor.fetchone()
        except sqlite3.Error:
            logger.exception(f"Failed to read dataset cache for {storage_key}")
            return None

        if row is None:
            return None

        payload, fetched_at = row
        age = time.time() - fetched_at
        if age > max_age_seconds:
            logger.debug(f"Dataset cache for {storage_key} is stale ({age:.0f}s old)")
            return None

        try:
            records = json.loads(payload)
            return [ExternalRow.from_mapping(r, r.get("row_index", i)) for i, r in enumerate(records)]
        except (ValueError, TypeError, AttributeError):
            logger.warning(f"Dataset cache for {storage_key} is corrupt, ignoring")
            return None

    def store(self, storage_key: str, rows: list[ExternalRow], fetched_at: Optional[int] = None) -> None:
        """Insert or replace the cached rows for a key."""
        fetched_at = int(fetched_at if fetched_at is not None else time.time())
        payload = json.dumps([r.to_dict() for r in rows])

        try:
            cursor = self._conn.cursor()
            cursor.execute("""
                INSERT INTO dataset_cache (storage_key, rows, fetched_at)
                VALUES (?, ?, ?)
                ON CONFLICT(storage_key) DO UPDATE SET
                    rows = excluded.rows,
                    fetched_at = excluded.fetched_at
            """, (storage_key, payload, fetched_at))
            self._conn.commit()
            logger.debug(f"Cached {len(rows)} rows under {storage_key}")
        except sqlite3.Error:
            logger.exception(f"Failed to write dataset cache for {storage_key}")

    def clear(self, storage_key: Optional[str] = None) -> None:
        """
        Clear cached data.

        Args:
            storage_key: If provided, clear only this key. If None, clear all.
        """
        try:
            cursor = self._conn.cursor()
            if storage_key:
                cursor.execute("DELETE FROM dataset_cache WHERE storage_key = ?", (storage_key,))
            else:
                cursor.execute("DELETE FROM dataset_cache")
            self._conn.commit()
        except sqlite3.Error:
            logger.exception(f"Failed to clear dataset cache for {storage_key or 'all keys'}")

    def close(self) -> None:
        self._conn.close()
