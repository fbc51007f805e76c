"""
SQLite Item Store for hifz-planner.

Provides portable persistence for:
- The user's progression config
- Memorization items and their review keys (completed / missed)
- The backlog redistribution queue

Database location: ~/.hifz/state.db (HIFZ_DB_PATH overrides)
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from loguru import logger

from hifz_planner.config import get_settings
from hifz_planner.core.dates import Clock, DateLike, SystemClock
from hifz_planner.core.exceptions import InvalidExportError, MalformedQueueError
from hifz_planner.core.models import ItemStatus, MemorizationItem, ProgressionConfig, review_key
from hifz_planner.core.queue import BacklogQueue
from hifz_planner.scheduling.backlog import BacklogManager

COMPLETED = "completed"
MISSED = "missed"


class ItemStore:
    """
    SQLite-backed persistence for items, completions and the backlog queue.

    Handles:
    - Progression config (single row)
    - Items keyed by their stable id
    - Review log of completed / missed review keys
    - The current backlog queue (single row, stored as its JSON wire shape)

    Storage errors propagate as sqlite3.Error; retrying is the caller's call.
    """

    def __init__(self, db_path: Path | None = None, clock: Clock | None = None):
        """
        Initialize the item store.

        Args:
            db_path: Custom database path (defaults to settings.db_path)
            clock: Clock used when a review is marked without a date
        """
        self.db_path = Path(db_path or get_settings().db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.clock = clock or SystemClock()

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"ItemStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS progression_config (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                data TEXT NOT NULL,
                updated_at TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                unit_type TEXT NOT NULL,
                sequence_number INTEGER NOT NULL,
                date_memorized TEXT NOT NULL,
                content_reference TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'active',
                progression_name TEXT NOT NULL DEFAULT '',
                archived_at TIMESTAMP
            )
        """)

        # One row per recorded review key
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS review_log (
                item_id TEXT NOT NULL,
                review_key TEXT NOT NULL,
                kind TEXT NOT NULL CHECK (kind IN ('completed', 'missed')),
                recorded_at TIMESTAMP,
                PRIMARY KEY (item_id, review_key, kind),
                FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS backlog_queue (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                data TEXT NOT NULL,
                saved_at TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_items_date
            ON items(date_memorized)
        """)

        self.conn.commit()

    # =========================================================================
    # Config Operations
    # =========================================================================

    def _write_config(self, config: ProgressionConfig) -> None:
        self.conn.execute(
            """
            INSERT INTO progression_config (id, data, updated_at) VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
        """,
            (json.dumps(config.to_dict()), self.clock.now().isoformat()),
        )

    def save_config(self, config: ProgressionConfig) -> None:
        """Save or replace the progression config."""
        self._write_config(config)
        self.conn.commit()

    def get_config(self) -> ProgressionConfig | None:
        """
        Get the progression config.

        Returns:
            ProgressionConfig, or None if setup has not run
        """
        row = self.conn.execute("SELECT data FROM progression_config WHERE id = 1").fetchone()
        if row is None:
            return None
        data = json.loads(row["data"])
        if not isinstance(data, dict):
            logger.warning("Stored progression config is not an object, ignoring it")
            return None
        return ProgressionConfig.from_dict(data, defaults=get_settings().get_progression_defaults())

    # =========================================================================
    # Item Operations
    # =========================================================================

    def _write_item(self, item: MemorizationItem) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO items (
                id, unit_type, sequence_number, date_memorized,
                content_reference, status, progression_name, archived_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                unit_type = excluded.unit_type,
                sequence_number = excluded.sequence_number,
                content_reference = excluded.content_reference,
                status = excluded.status,
                progression_name = excluded.progression_name,
                archived_at = excluded.archived_at
        """,
            (
                item.id,
                item.unit_type,
                item.sequence_number,
                item.date_key,
                item.content_reference,
                item.status.value,
                item.progression_name,
                item.archived_at.isoformat() if item.archived_at else None,
            ),
        )

        cursor.execute("DELETE FROM review_log WHERE item_id = ?", (item.id,))
        recorded_at = self.clock.now().isoformat()
        cursor.executemany(
            "INSERT INTO review_log (item_id, review_key, kind, recorded_at) VALUES (?, ?, ?, ?)",
            [(item.id, key, COMPLETED, recorded_at) for key in sorted(item.reviews_completed)]
            + [(item.id, key, MISSED, recorded_at) for key in sorted(item.reviews_missed)],
        )

    def save_item(self, item: MemorizationItem) -> None:
        """
        Save or update an item together with its review keys.

        The stored review keys are replaced by the item's sets.
        """
        self._write_item(item)
        self.conn.commit()

    def _load_items(self, where: str = "", params: tuple = ()) -> list[MemorizationItem]:
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT * FROM items {where} ORDER BY date_memorized ASC, sequence_number ASC",
            params,
        )
        rows = cursor.fetchall()
        if not rows:
            return []

        reviews: dict[str, dict[str, set[str]]] = {}
        cursor.execute("SELECT item_id, review_key, kind FROM review_log")
        for log in cursor.fetchall():
            reviews.setdefault(log["item_id"], {COMPLETED: set(), MISSED: set()})[log["kind"]].add(
                log["review_key"]
            )

        items = []
        for row in rows:
            recorded = reviews.get(row["id"], {COMPLETED: set(), MISSED: set()})
            items.append(MemorizationItem.from_dict({
                **dict(row),
                "reviews_completed": recorded[COMPLETED],
                "reviews_missed": recorded[MISSED],
            }))
        return items

    def get_all_items(self) -> list[MemorizationItem]:
        """Get all items (active and archived), oldest first."""
        return self._load_items()

    def get_item(self, item_id: str) -> MemorizationItem | None:
        """Get one item by id."""
        items = self._load_items("WHERE id = ?", (item_id,))
        return items[0] if items else None

    def _item_exists(self, item_id: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM items WHERE id = ?", (item_id,)).fetchone()
        return row is not None

    def archive_item(self, item_id: str) -> bool:
        """Archive an item. Returns False if it does not exist."""
        cursor = self.conn.execute(
            "UPDATE items SET status = ?, archived_at = ? WHERE id = ?",
            (ItemStatus.ARCHIVED.value, self.clock.now().isoformat(), item_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def delete_item(self, item_id: str) -> bool:
        """Delete an item and its review log. Returns False if it does not exist."""
        cursor = self.conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # =========================================================================
    # Review Operations
    # =========================================================================

    def _resolve_key(self, station: int, date_key: DateLike | None) -> str:
        when = date_key if date_key is not None else self.clock.now()
        return review_key(station, when)

    def mark_review_complete(
        self,
        item_id: str,
        station: int,
        date_key: DateLike | None = None,
    ) -> bool:
        """
        Record a completed review.

        Args:
            item_id: The reviewed item
            station: Station number (1-7)
            date_key: Date the review belongs to (today if None)

        Returns:
            False if the item does not exist
        """
        if not self._item_exists(item_id):
            return False

        key = self._resolve_key(station, date_key)
        self.conn.execute(
            "INSERT OR IGNORE INTO review_log (item_id, review_key, kind, recorded_at) VALUES (?, ?, ?, ?)",
            (item_id, key, COMPLETED, self.clock.now().isoformat()),
        )
        self.conn.execute(
            "DELETE FROM review_log WHERE item_id = ? AND review_key = ? AND kind = ?",
            (item_id, key, MISSED),
        )
        self.conn.commit()
        logger.debug(f"Marked {key} complete for {item_id}")
        return True

    def unmark_review_complete(
        self,
        item_id: str,
        station: int,
        date_key: DateLike | None = None,
    ) -> bool:
        """
        Remove a completed review.

        Returns:
            False if no completion was recorded for that key (or the item
            does not exist)
        """
        key = self._resolve_key(station, date_key)
        cursor = self.conn.execute(
            "DELETE FROM review_log WHERE item_id = ? AND review_key = ? AND kind = ?",
            (item_id, key, COMPLETED),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def mark_review_missed(
        self,
        item_id: str,
        station: int,
        date_key: DateLike | None = None,
    ) -> bool:
        """Record a missed review (advisory). Returns False if the item does not exist."""
        if not self._item_exists(item_id):
            return False

        key = self._resolve_key(station, date_key)
        self.conn.execute(
            "INSERT OR IGNORE INTO review_log (item_id, review_key, kind, recorded_at) VALUES (?, ?, ?, ?)",
            (item_id, key, MISSED, self.clock.now().isoformat()),
        )
        self.conn.commit()
        return True

    def is_review_completed(self, item_id: str, station: int, date_key: DateLike) -> bool:
        """Check whether the review key for (station, date) is recorded."""
        row = self.conn.execute(
            "SELECT 1 FROM review_log WHERE item_id = ? AND review_key = ? AND kind = ?",
            (item_id, review_key(station, date_key), COMPLETED),
        ).fetchone()
        return row is not None

    # =========================================================================
    # Backlog Queue Operations
    # =========================================================================

    def get_backlog_queue(self) -> BacklogQueue | None:
        """
        Get the stored backlog queue.

        Raises:
            MalformedQueueError: If the stored queue does not match the schema
        """
        row = self.conn.execute("SELECT data FROM backlog_queue WHERE id = 1").fetchone()
        if row is None:
            return None
        try:
            data = json.loads(row["data"])
        except json.JSONDecodeError as e:
            raise MalformedQueueError(f"Stored backlog queue is not valid JSON: {e}") from e
        return BacklogManager.load_queue(data)

    def _write_queue(self, queue: BacklogQueue) -> None:
        self.conn.execute(
            """
            INSERT INTO backlog_queue (id, data, saved_at) VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                saved_at = excluded.saved_at
        """,
            (json.dumps(queue.to_wire()), self.clock.now().isoformat()),
        )

    def save_backlog_queue(self, queue: BacklogQueue) -> None:
        """Save or replace the backlog queue."""
        self._write_queue(queue)
        self.conn.commit()

    def clear_backlog_queue(self) -> None:
        """Delete the backlog queue."""
        self.conn.execute("DELETE FROM backlog_queue")
        self.conn.commit()

    # =========================================================================
    # Export / Import
    # =========================================================================

    def export_data(self) -> dict[str, Any]:
        """Export config, items and backlog queue as a JSON-ready dict."""
        config = self.get_config()
        queue = self.get_backlog_queue()
        return {
            "config": config.to_dict() if config else None,
            "items": [item.to_dict() for item in self.get_all_items()],
            "backlog_queue": queue.to_wire() if queue else None,
            "exported_at": self.clock.now().isoformat(),
        }

    def import_data(self, data: dict[str, Any]) -> int:
        """
        Replace stored data with an export.

        Everything is validated before anything is written, and the
        writes run in one transaction.

        Returns:
            Number of items imported

        Raises:
            InvalidExportError: If the config or an item cannot be read
            MalformedQueueError: If the exported queue is malformed
        """
        try:
            config_data = data.get("config")
            config = None
            if isinstance(config_data, dict):
                config = ProgressionConfig.from_dict(
                    config_data, defaults=get_settings().get_progression_defaults()
                )
            items = [MemorizationItem.from_dict(raw) for raw in data.get("items") or []]
        except KeyError as e:
            raise InvalidExportError(f"Not a valid export: item is missing {e}") from e
        except (TypeError, ValueError) as e:
            raise InvalidExportError(f"Not a valid export: {e}") from e
        queue = BacklogManager.load_queue(data.get("backlog_queue") or None)

        with self.conn:
            if config is not None:
                self._write_config(config)
            self.conn.execute("DELETE FROM items")
            for item in items:
                self._write_item(item)
            if queue is not None:
                self._write_queue(queue)
            else:
                self.conn.execute("DELETE FROM backlog_queue")

        logger.info(f"Imported {len(items)} items")
        return len(items)

    def clear_all(self) -> None:
        """Delete the config, every item with its review log, and the backlog queue."""
        with self.conn:
            self.conn.execute("DELETE FROM progression_config")
            self.conn.execute("DELETE FROM items")
            self.conn.execute("DELETE FROM backlog_queue")
        logger.info("Cleared all stored data")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> ItemStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
