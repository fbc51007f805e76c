"""
Today Planner: one ordered task list for a day.

Joins the pieces the scheduling layer keeps apart:
- Materializes one stored item per elapsed day of the progression
- Regular schedule tasks (new, yesterday, spaced)
- For the real today only: catch-up tasks from the backlog queue and
  overdue reviews the queue does not cover
- Completion state, read against the review's original due date for
  catch-up and overdue tasks
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from loguru import logger

from hifz_planner.core.dates import Clock, DateLike, add_days, days_between, is_same_day, normalize, to_key
from hifz_planner.core.models import (
    MemorizationItem,
    OverdueEntry,
    ProgressionConfig,
    QueueStats,
    Task,
    TaskPriority,
)
from hifz_planner.core.queue import BacklogQueue
from hifz_planner.scheduling.backlog import BacklogManager
from hifz_planner.scheduling.schedule_engine import ScheduleEngine, format_content_reference

from .item_store import ItemStore


@dataclass
class DayPlan:
    """Everything the renderer needs for one day."""

    date_key: str
    is_today: bool
    configured: bool = True
    tasks: list[Task] = field(default_factory=list)
    overdue: list[OverdueEntry] = field(default_factory=list)
    queue_stats: QueueStats | None = None
    offer_spread: bool = False

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def completed(self) -> int:
        return sum(1 for t in self.tasks if t.is_completed)


class TodayPlanner:
    """
    Builds day plans on top of an ItemStore.

    The engine and backlog manager share the planner's clock so the
    morning cutoff and "today" always agree.
    """

    def __init__(
        self,
        store: ItemStore,
        engine: ScheduleEngine | None = None,
        backlog: BacklogManager | None = None,
        clock: Clock | None = None,
    ):
        self.store = store
        self.clock = clock or store.clock
        self.engine = engine or ScheduleEngine(clock=self.clock)
        self.backlog = backlog or BacklogManager(clock=self.clock)

    def today(self) -> date:
        return normalize(self.clock.now())

    # =========================================================================
    # Setup & Items
    # =========================================================================

    def setup(self, config: ProgressionConfig) -> None:
        """Save a new progression config and forget memoized schedules."""
        self.store.save_config(config)
        self.engine.clear_cache()
        logger.info(f"Progression configured from {config.start_key}: {config.total_units} {config.unit_type} units")

    def ensure_items(self, config: ProgressionConfig, up_to: DateLike) -> list[MemorizationItem]:
        """
        Store one active item per progression day up to a date.

        Existing items keep their id, status and completion history; only
        their display label is refreshed. Archived items are never revived.

        Returns:
            All stored items after materialization
        """
        items = self.store.get_all_items()
        if config.start_date is None:
            return items

        days_elapsed = days_between(up_to, config.start_date)
        days_to_create = min(days_elapsed + 1, config.total_units)
        if days_to_create <= 0:
            return items

        existing = {
            (item.sequence_number, item.date_memorized): item
            for item in items
            if item.unit_type == config.unit_type
        }

        created = 0
        for day in range(days_to_create):
            sequence_number = day + 1
            memorized = add_days(config.start_date, day)
            label = format_content_reference(config.unit_type, config.unit_number(sequence_number))

            item = existing.get((sequence_number, memorized))
            if item is None:
                item = MemorizationItem.create(
                    unit_type=config.unit_type,
                    sequence_number=sequence_number,
                    date_memorized=memorized,
                    content_reference=label,
                    progression_name=config.progression_name,
                )
                self.store.save_item(item)
                items.append(item)
                created += 1
            elif item.content_reference != label:
                item.content_reference = label
                self.store.save_item(item)

        if created:
            logger.debug(f"Materialized {created} new items up to {to_key(up_to)}")
            self.engine.clear_cache()
        return items

    # =========================================================================
    # Day Plans
    # =========================================================================

    def build_day(self, target: DateLike | None = None, selected: bool = False) -> DayPlan:
        """
        Build the ordered task list for a day.

        Args:
            target: Day to plan (today if None)
            selected: True when the user explicitly picked the date

        Returns:
            DayPlan; configured=False when setup has not run

        Raises:
            MalformedQueueError: If the stored backlog queue is corrupt
        """
        today = self.today()
        day = normalize(target) if target is not None else today
        date_key = to_key(day)
        is_today = is_same_day(day, today)

        config = self.store.get_config()
        if config is None or config.start_date is None:
            return DayPlan(date_key=date_key, is_today=is_today, configured=False)

        items = self.ensure_items(config, min(day, today))
        is_selected = selected or not is_today
        schedule = self.engine.get_daily_schedule(day, items, config, is_selected_date=is_selected)

        tasks: dict[tuple[str, int], Task] = {}
        for task in schedule.all_tasks():
            current = tasks.get(task.key)
            if current is None or task.priority < current.priority:
                tasks[task.key] = task

        plan = DayPlan(date_key=date_key, is_today=is_today)

        if is_today:
            queue = self.maintain_backlog(date_key)
            plan.overdue = self.backlog.detect_overdue_reviews(items, date_key)

            for catchup in self.backlog.get_tasks_for_date(queue, date_key, items):
                key = (catchup.item.id, catchup.station)
                if key not in tasks:
                    tasks[key] = Task(
                        item=catchup.item,
                        priority=TaskPriority.CATCHUP,
                        station=catchup.station,
                        is_catchup=True,
                        original_due_date=catchup.original_due_date,
                    )

            items_by_id = {item.id: item for item in items}
            for entry in self.backlog.uncovered_overdue(plan.overdue, queue, date_key):
                item = items_by_id.get(entry.item_id)
                if item is None or entry.key in tasks:
                    continue
                tasks[entry.key] = Task(
                    item=item,
                    priority=TaskPriority.CATCHUP,
                    station=entry.station,
                    is_overdue=True,
                    days_overdue=entry.days_overdue,
                    original_due_date=entry.original_due_date,
                )

            if queue is not None:
                plan.queue_stats = self.backlog.get_queue_stats(queue)
            else:
                plan.offer_spread = bool(plan.overdue) and self.backlog.should_offer_spread(plan.overdue)

        for task in tasks.values():
            if task.is_placeholder:
                continue
            task.is_completed = self.store.is_review_completed(
                task.item.id, task.station, task.review_date_key(date_key)
            )

        plan.tasks = sorted(
            tasks.values(),
            key=lambda t: (t.is_completed, t.priority, t.item.content_reference),
        )
        return plan

    # =========================================================================
    # Backlog
    # =========================================================================

    def maintain_backlog(self, today_key: DateLike | None = None) -> BacklogQueue | None:
        """
        Prune the stored queue; save it if anything is left, clear it otherwise.

        Returns:
            The queue still in effect, or None
        """
        queue = self.store.get_backlog_queue()
        if queue is None:
            return None

        pruned = self.backlog.prune_queue(queue, today_key or self.today())
        if pruned.items:
            if pruned != queue:
                self.store.save_backlog_queue(pruned)
            return pruned

        self.store.clear_backlog_queue()
        self.engine.clear_cache()
        logger.info("Backlog queue finished and cleared")
        return None

    def spread_backlog(
        self,
        spread_days: int | None = None,
        daily_capacity: int | None = None,
    ) -> BacklogQueue | None:
        """
        Redistribute every current overdue review starting today.

        Returns:
            The saved queue, or None when nothing is overdue
        """
        today_key = to_key(self.today())
        config = self.store.get_config()
        if config is not None:
            items = self.ensure_items(config, today_key)
        else:
            items = self.store.get_all_items()

        overdue = self.backlog.detect_overdue_reviews(items, today_key)
        if not overdue:
            return None

        queue = self.backlog.build_queue(overdue, today_key, spread_days, daily_capacity)
        self.store.save_backlog_queue(queue)
        self.engine.clear_cache()
        return queue

    def clear_backlog(self) -> None:
        self.store.clear_backlog_queue()
        self.engine.clear_cache()

    # =========================================================================
    # Completion
    # =========================================================================

    def complete_task(self, item_id: str, station: int, date_key: DateLike | None = None) -> bool:
        """
        Record a review as done.

        Also completes the matching pending backlog entry, if any.

        Returns:
            False if the item does not exist
        """
        review_date = to_key(date_key) if date_key is not None else to_key(self.today())
        if not self.store.mark_review_complete(item_id, station, review_date):
            return False

        queue = self.store.get_backlog_queue()
        if queue is not None:
            updated = self.backlog.mark_entry_completed(queue, item_id, station, review_date)
            if updated != queue:
                self.store.save_backlog_queue(updated)

        self.engine.clear_cache()
        return True

    def uncomplete_task(self, item_id: str, station: int, date_key: DateLike | None = None) -> bool:
        """
        Remove a review's completion.

        A backlog entry completed through this review stays completed.

        Returns:
            False if no completion was recorded for that review
        """
        review_date = to_key(date_key) if date_key is not None else to_key(self.today())
        if not self.store.unmark_review_complete(item_id, station, review_date):
            return False
        self.engine.clear_cache()
        return True

    def skip_task(self, item_id: str, station: int, date_key: DateLike | None = None) -> bool:
        """Record a review as missed (advisory). Returns False if the item does not exist."""
        review_date = to_key(date_key) if date_key is not None else to_key(self.today())
        return self.store.mark_review_missed(item_id, station, review_date)

    # =========================================================================
    # Item Management
    # =========================================================================

    def archive_item(self, item_id: str) -> bool:
        """Stop scheduling an item while keeping its history."""
        if not self.store.archive_item(item_id):
            return False
        self.engine.clear_cache()
        logger.info(f"Archived {item_id}")
        return True

    def delete_item(self, item_id: str) -> bool:
        """
        Delete an item and its review history.

        An item still inside the progression comes back empty the next
        time items are materialized.
        """
        if not self.store.delete_item(item_id):
            return False
        self.engine.clear_cache()
        logger.info(f"Deleted {item_id}")
        return True

    def reset(self) -> None:
        """Forget the config, every item and the backlog queue."""
        self.store.clear_all()
        self.engine.clear_cache()
