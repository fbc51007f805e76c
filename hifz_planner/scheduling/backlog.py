"""
Backlog Manager: overdue review detection and redistribution.

When reviews pile up (a missed week, travel, illness), showing all of
them at once is discouraging. The backlog manager:

1. Detects every overdue review of stations 3-7
2. Orders them: nearest station first, least overdue first within a station
3. Packs them greedily into daily slots starting today, at most
   `daily_capacity` per day, extending the spread when needed so that
   no overdue review is ever dropped
4. Surfaces each day's slot as catch-up tasks and prunes finished or
   stale entries

Queue entry lifecycle:
    pending -> completed   (user finished the review)
    pending -> removed     (pruned once its rescheduled day has passed)
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from loguru import logger

from hifz_planner.config import Settings, get_settings
from hifz_planner.core.dates import Clock, DateLike, SystemClock, add_days, days_between, normalize, to_key
from hifz_planner.core.models import (
    BACKLOG_STATION_PRIORITY,
    BACKLOG_STATIONS,
    STATION_OFFSETS,
    UNRANKED_STATION_PRIORITY,
    CatchupTask,
    MemorizationItem,
    OverdueEntry,
    QueueStats,
)
from hifz_planner.core.queue import QUEUE_VERSION, BacklogQueue, QueueEntry, QueueEntryStatus


class BacklogManager:
    """
    Detects overdue reviews and maintains the redistribution queue.

    All operations are pure functions of their arguments; the manager
    only holds settings and the clock used to stamp new queues.
    """

    def __init__(self, settings: Settings | None = None, clock: Clock | None = None):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()

    # =========================================================================
    # Detection
    # =========================================================================

    def detect_overdue_reviews(
        self,
        items: Sequence[MemorizationItem],
        today_key: DateLike,
    ) -> list[OverdueEntry]:
        """
        Detect all overdue reviews across active items.

        A review is overdue when its station is 3-7, its due date is
        strictly before today, and its review key is not recorded.

        Args:
            items: All stored items
            today_key: Today's date ("YYYY-MM-DD")

        Returns:
            Entries sorted by station priority, then days overdue ascending

        Raises:
            InvalidDateError: If today_key is not a valid date
        """
        today = normalize(today_key)
        overdue: list[OverdueEntry] = []

        for item in items:
            if not item.is_active or item.date_memorized is None:
                continue

            days_passed = days_between(today, item.date_memorized)

            for station in BACKLOG_STATIONS:
                offset = STATION_OFFSETS[station - 1]
                if days_passed <= offset:
                    continue

                due_key = to_key(add_days(item.date_memorized, offset))
                if item.has_completed(station, due_key):
                    continue

                overdue.append(OverdueEntry(
                    item_id=item.id,
                    station=station,
                    original_due_date=due_key,
                    days_overdue=days_passed - offset,
                    station_priority=BACKLOG_STATION_PRIORITY.get(station, UNRANKED_STATION_PRIORITY),
                ))

        overdue.sort(key=lambda e: (e.station_priority, e.days_overdue))
        return overdue

    def should_offer_spread(self, entries: Sequence[OverdueEntry]) -> bool:
        """Check whether enough reviews are overdue to offer redistribution."""
        threshold = self.settings.backlog_overdue_threshold_days
        past_threshold = sum(1 for e in entries if e.days_overdue >= threshold)
        return past_threshold >= self.settings.backlog_min_overdue_count

    def uncovered_overdue(
        self,
        entries: Sequence[OverdueEntry],
        queue: BacklogQueue | None,
        today_key: DateLike,
    ) -> list[OverdueEntry]:
        """
        Overdue entries not already scheduled by the queue.

        Only pending entries rescheduled for today or later count as
        covering a review; stale and completed entries do not.
        """
        if queue is None:
            return list(entries)
        today = to_key(today_key)
        covered = {
            e.key for e in queue.items
            if e.is_pending and e.rescheduled_date >= today
        }
        return [e for e in entries if e.key not in covered]

    # =========================================================================
    # Queue Building
    # =========================================================================

    def build_queue(
        self,
        entries: Sequence[OverdueEntry],
        today_key: DateLike,
        spread_days: int | None = None,
        daily_capacity: int | None = None,
    ) -> BacklogQueue:
        """
        Distribute overdue entries across consecutive days starting today.

        Every entry is placed. When ceil(count / capacity) exceeds
        spread_days, the spread grows to fit instead of dropping entries.

        Args:
            entries: Overdue entries, already sorted
            today_key: First day of the spread
            spread_days: Requested spread length (settings default if None)
            daily_capacity: Maximum entries per day (settings default if None)

        Returns:
            A new BacklogQueue with every entry pending
        """
        today = normalize(today_key)
        if not daily_capacity or daily_capacity < 1:
            daily_capacity = self.settings.backlog_daily_capacity
        if spread_days is None:
            spread_days = self.settings.backlog_default_spread_days
        spread_days = max(1, spread_days)

        unique: list[OverdueEntry] = []
        seen: set[tuple[str, int]] = set()
        for entry in entries:
            if entry.key in seen:
                continue
            seen.add(entry.key)
            unique.append(entry)

        min_days_needed = math.ceil(len(unique) / daily_capacity)
        actual_spread_days = max(spread_days, min_days_needed)

        slots = [to_key(add_days(today, i)) for i in range(actual_spread_days)]
        slot_counts = [0] * actual_spread_days

        queue_items: list[QueueEntry] = []
        slot_index = 0
        for entry in unique:
            while slot_counts[slot_index] >= daily_capacity:
                slot_index += 1
            queue_items.append(QueueEntry(
                item_id=entry.item_id,
                station=entry.station,
                original_due_date=entry.original_due_date,
                rescheduled_date=slots[slot_index],
                status=QueueEntryStatus.PENDING,
            ))
            slot_counts[slot_index] += 1

        if actual_spread_days > spread_days:
            logger.info(
                f"Backlog of {len(unique)} needs {actual_spread_days} days at "
                f"{daily_capacity}/day, extending requested spread of {spread_days}"
            )
        logger.info(f"Built backlog queue: {len(queue_items)} reviews over {actual_spread_days} days")

        return BacklogQueue(
            version=QUEUE_VERSION,
            created_at=self.clock.now().isoformat(timespec="seconds"),
            spread_days=actual_spread_days,
            daily_capacity=daily_capacity,
            total_items=len(queue_items),
            items=queue_items,
        )

    # =========================================================================
    # Queue Queries
    # =========================================================================

    def get_tasks_for_date(
        self,
        queue: BacklogQueue | None,
        date_key: DateLike,
        items: Sequence[MemorizationItem],
    ) -> list[CatchupTask]:
        """
        Pending catch-up tasks rescheduled onto a date.

        Entries whose item no longer exists or was archived are skipped.
        """
        if queue is None:
            return []

        target = to_key(date_key)
        items_by_id = {item.id: item for item in items}
        tasks = []

        for entry in queue.items:
            if entry.rescheduled_date != target or not entry.is_pending:
                continue
            item = items_by_id.get(entry.item_id)
            if item is None or not item.is_active:
                logger.debug(f"Skipping queued review for missing or archived item {entry.item_id}")
                continue
            tasks.append(CatchupTask(
                item=item,
                station=entry.station,
                original_due_date=entry.original_due_date,
            ))

        return tasks

    @staticmethod
    def get_queue_stats(queue: BacklogQueue | None) -> QueueStats:
        """
        Progress through a queue.

        total is fixed when the queue is built, so the progress display
        stays stable while entries complete and get pruned.
        """
        if queue is None:
            return QueueStats(total=0, remaining=0)
        total = queue.total_items or len(queue.items)
        remaining = sum(1 for e in queue.items if e.is_pending)
        return QueueStats(total=total, remaining=remaining)

    # =========================================================================
    # Queue Maintenance
    # =========================================================================

    @staticmethod
    def prune_queue(queue: BacklogQueue | None, today_key: DateLike) -> BacklogQueue | None:
        """
        Remove completed entries and pending entries whose day has passed.

        Only filters: identity and original due dates are never touched,
        so pruning twice with the same today is a no-op.
        """
        if queue is None:
            return None
        today = to_key(today_key)
        kept = [
            e for e in queue.items
            if e.is_pending and e.rescheduled_date >= today
        ]
        dropped = len(queue.items) - len(kept)
        if dropped:
            logger.info(f"Pruned {dropped} completed or stale backlog entries")
        return queue.model_copy(update={"items": kept})

    @staticmethod
    def mark_entry_completed(
        queue: BacklogQueue | None,
        item_id: str,
        station: int,
        original_due_date: DateLike | None = None,
    ) -> BacklogQueue | None:
        """
        Mark the pending entry for (item_id, station) completed.

        When original_due_date is given, only an entry for that due date
        matches. Completion is one-way: nothing sets an entry back to pending.
        """
        if queue is None:
            return None
        due_key = to_key(original_due_date) if original_due_date is not None else None

        def _matches(entry: QueueEntry) -> bool:
            if entry.key != (item_id, station) or not entry.is_pending:
                return False
            return due_key is None or entry.original_due_date == due_key

        updated = [
            e.model_copy(update={"status": QueueEntryStatus.COMPLETED}) if _matches(e) else e
            for e in queue.items
        ]
        return queue.model_copy(update={"items": updated})

    @staticmethod
    def load_queue(raw: Any) -> BacklogQueue | None:
        """
        Validate a persisted queue payload.

        Raises:
            MalformedQueueError: If the payload does not match the schema
        """
        if raw is None:
            return None
        if isinstance(raw, BacklogQueue):
            return raw
        return BacklogQueue.from_wire(raw)
