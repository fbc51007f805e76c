"""
Progress statistics and calendar task counts.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from hifz_planner.core.dates import DateLike, add_days, days_between, normalize, to_key
from hifz_planner.core.models import MemorizationItem, ProgressionConfig, review_key

from .schedule_engine import ScheduleEngine, calculate_review_dates


@dataclass(frozen=True)
class ProgressStats:
    """Progress relative to a given day."""

    total_items: int = 0
    total_reviews: int = 0
    completed_reviews: int = 0

    @property
    def completion_rate(self) -> float:
        """Percentage of reviews due so far that were completed."""
        if self.total_reviews == 0:
            return 0.0
        return self.completed_reviews * 100 / self.total_reviews


def get_progress_stats(
    items: Sequence[MemorizationItem],
    config: ProgressionConfig | None,
    today: DateLike,
) -> ProgressStats:
    """
    Count expected units and completed reviews up to and including today.

    Units are expected one per day from start_date, capped at
    total_units. Reviews are only counted for units that are stored.
    """
    if config is None or config.start_date is None:
        return ProgressStats()

    today = normalize(today)
    days_since_start = days_between(today, config.start_date)
    if days_since_start < 0:
        return ProgressStats()

    expected_units = min(days_since_start + 1, config.total_units)
    stored = {
        (item.sequence_number, item.date_memorized): item
        for item in items
        if item.is_active
    }

    total_reviews = 0
    completed_reviews = 0
    for day in range(expected_units):
        memorized = add_days(config.start_date, day)
        item = stored.get((day + 1, memorized))
        if item is None:
            continue
        for review in calculate_review_dates(item.date_memorized):
            if review.date_key > to_key(today):
                continue
            total_reviews += 1
            if review_key(review.station, review.date_key) in item.reviews_completed:
                completed_reviews += 1

    return ProgressStats(
        total_items=expected_units,
        total_reviews=total_reviews,
        completed_reviews=completed_reviews,
    )


def get_task_counts_for_month(
    engine: ScheduleEngine,
    items: Sequence[MemorizationItem],
    config: ProgressionConfig | None,
    year: int,
    month: int,
) -> dict[str, dict[str, int]]:
    """
    Per-date task counts for a calendar month.

    Every date is treated as an explicitly selected date, so the
    morning cutoff never hides today's counts. Dates without tasks
    are omitted.
    """
    if config is None or config.start_date is None:
        return {}

    counts: dict[str, dict[str, int]] = {}
    _, days_in_month = calendar.monthrange(year, month)

    for day in range(1, days_in_month + 1):
        current = date(year, month, day)
        schedule = engine.get_daily_schedule(current, items, config, is_selected_date=True)
        if not schedule.is_empty:
            counts[to_key(current)] = schedule.counts()

    return counts


def get_next_unit_number(items: Sequence[MemorizationItem]) -> int:
    """Sequence number of the next unit to memorize."""
    numbers = [item.sequence_number for item in items if item.is_active and item.sequence_number > 0]
    return max(numbers) + 1 if numbers else 1


def filter_by_progression(
    items: Sequence[MemorizationItem],
    progression_name: str | None,
) -> list[MemorizationItem]:
    """Items of one named progression (all items when the name is None)."""
    if progression_name is None:
        return list(items)
    return [item for item in items if item.progression_name == progression_name]


def group_by_progression(items: Sequence[MemorizationItem]) -> dict[str, list[MemorizationItem]]:
    """Active items keyed by progression name, in first-seen order."""
    groups: dict[str, list[MemorizationItem]] = {}
    for item in items:
        if item.is_active:
            groups.setdefault(item.progression_name, []).append(item)
    return groups
