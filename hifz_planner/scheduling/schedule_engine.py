"""
Schedule Engine: which memorization and review tasks fall on a date.

Implements:
- Fixed seven-station review ladder (day 0 AM/PM, day 1, 4, 11, 25, 55)
- Morning cutoff gating for the live "today" view
- Placeholder tasks for today's unit before it is stored
- Memoized schedules for dates other than today

Station routing:
    1, 2   -> new_memorization (tagged morning / evening)
    3      -> yesterday_review
    4 - 7  -> spaced_review
"""

from __future__ import annotations

import copy
from collections import OrderedDict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from loguru import logger

from hifz_planner.config import get_settings
from hifz_planner.core.dates import (
    Clock,
    DateLike,
    SystemClock,
    add_days,
    days_between,
    is_same_day,
    local_now,
    normalize,
    to_key,
)
from hifz_planner.core.models import (
    SAME_DAY_STATIONS,
    STATION_MAX,
    STATION_MIN,
    STATION_OFFSETS,
    YESTERDAY_STATION,
    DailySchedule,
    MemorizationItem,
    ProgressionConfig,
    ReviewDate,
    ReviewDue,
    Task,
    TaskPriority,
    TimeOfDay,
)

UNIT_LABELS = {
    "page": "Page",
    "verse": "Ayah",
    "hizb": "Hizb",
    "juz": "Juz",
}


# =============================================================================
# Station Arithmetic
# =============================================================================


def _same_day_time(station: int) -> TimeOfDay:
    return TimeOfDay.MORNING if station == 1 else TimeOfDay.EVENING


def format_content_reference(unit_type: str, number: float) -> str:
    """
    Display label for a unit, e.g. "Page 12" or "Ayah 3".

    Fractional page numbers keep their fraction ("Page 1.5"); whole
    numbers never show a trailing ".0".
    """
    label = UNIT_LABELS.get(unit_type, "Unit")
    if isinstance(number, float) and number.is_integer():
        number = int(number)
    return f"{label} {number}"


def calculate_review_dates(memorization_date: DateLike) -> list[ReviewDate]:
    """
    Calculate all seven review dates for a memorization date.

    Args:
        memorization_date: Day the unit was memorized

    Returns:
        One ReviewDate per station, in station order
    """
    memorized = normalize(memorization_date)
    dates = []
    for index, offset in enumerate(STATION_OFFSETS):
        station = index + 1
        time_of_day = _same_day_time(station) if offset == 0 else TimeOfDay.ANY
        dates.append(ReviewDate(
            station=station,
            date_key=to_key(add_days(memorized, offset)),
            time_of_day=time_of_day,
        ))
    return dates


def get_review_date_for_station(memorization_date: DateLike, station: int) -> str | None:
    """Review date key for one station, or None for an unknown station."""
    if not STATION_MIN <= station <= STATION_MAX:
        return None
    return to_key(add_days(memorization_date, STATION_OFFSETS[station - 1]))


def is_review_due(item: MemorizationItem | None, target_date: DateLike, station: int) -> bool:
    """Check if a station's review falls on the target date."""
    if item is None or item.date_memorized is None:
        return False
    if not STATION_MIN <= station <= STATION_MAX:
        return False
    return days_between(target_date, item.date_memorized) == STATION_OFFSETS[station - 1]


def get_reviews_due_on_date(item: MemorizationItem | None, target_date: DateLike) -> list[ReviewDue]:
    """
    Get all station reviews of an item that fall on a date.

    Due-ness ignores completion state: the same inputs always
    produce the same answer.
    """
    if item is None or item.date_memorized is None:
        return []

    days_passed = days_between(target_date, item.date_memorized)
    due = []
    for index, offset in enumerate(STATION_OFFSETS):
        if days_passed != offset:
            continue
        station = index + 1
        time_of_day = _same_day_time(station) if offset == 0 else TimeOfDay.ANY
        due.append(ReviewDue(station=station, time_of_day=time_of_day))
    return due


# =============================================================================
# Schedule Cache
# =============================================================================


@dataclass(frozen=True)
class CacheKey:
    """Identity of a memoized schedule."""

    target_key: str
    start_key: str | None
    item_count: int


ItemsHash = tuple[int, str, str]


class ScheduleCache:
    """
    Bounded FIFO cache of computed schedules.

    Each entry also stores a cheap structural hash of the item list
    (count plus first and last id) so a mutated list misses without
    a full diff. Schedules are deep-copied on the way in and out.
    """

    def __init__(self, max_size: int = 50):
        self.max_size = max(1, max_size)
        self._entries: OrderedDict[CacheKey, tuple[ItemsHash, DailySchedule]] = OrderedDict()

    @staticmethod
    def hash_items(items: Sequence[MemorizationItem]) -> ItemsHash:
        if not items:
            return (0, "", "")
        return (len(items), items[0].id, items[-1].id)

    def get(self, key: CacheKey, items: Sequence[MemorizationItem]) -> DailySchedule | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        items_hash, schedule = entry
        if items_hash != self.hash_items(items):
            return None
        return copy.deepcopy(schedule)

    def put(self, key: CacheKey, items: Sequence[MemorizationItem], schedule: DailySchedule) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (self.hash_items(items), copy.deepcopy(schedule))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


# =============================================================================
# Schedule Engine
# =============================================================================


class ScheduleEngine:
    """
    Computes the daily schedule for any date.

    Results are deterministic given the target date, the item
    snapshot, the config, the injected clock and is_selected_date.
    One engine owns one cache; it is not safe to share an engine
    between threads.
    """

    def __init__(self, clock: Clock | None = None, cache_size: int | None = None):
        """
        Initialize the engine.

        Args:
            clock: Wall-clock source (system local time if None)
            cache_size: Maximum memoized schedules (settings default if None)
        """
        self.clock = clock or SystemClock()
        if cache_size is None:
            cache_size = get_settings().schedule_cache_size
        self.cache = ScheduleCache(max_size=cache_size)

    def clear_cache(self) -> None:
        """Drop all memoized schedules (after completions or config changes)."""
        self.cache.clear()

    def get_daily_schedule(
        self,
        target_date: DateLike,
        items: Sequence[MemorizationItem],
        config: ProgressionConfig | None,
        is_selected_date: bool = False,
    ) -> DailySchedule:
        """
        Generate the schedule for a target date.

        Args:
            target_date: Date to schedule
            items: Snapshot of all stored items (archived ones are ignored)
            config: User's progression config (empty schedule if None)
            is_selected_date: True when the user explicitly picked the date,
                which shows its tasks regardless of the morning cutoff

        Returns:
            DailySchedule with new_memorization, yesterday_review and
            spaced_review task lists
        """
        if config is None or config.start_date is None:
            return DailySchedule()

        target = normalize(target_date)
        target_key = to_key(target)
        now = local_now(self.clock)
        is_today = is_same_day(target, now)

        use_cache = not is_selected_date and not is_today
        cache_key = CacheKey(target_key, config.start_key, len(items))
        if use_cache:
            cached = self.cache.get(cache_key, items)
            if cached is not None:
                logger.debug(f"Schedule cache hit for {target_key}")
                return cached

        schedule = DailySchedule()
        visible = is_selected_date or not is_today or now.hour >= config.morning_hour

        if visible:
            schedule.new_memorization.extend(self._placeholder_tasks(target, items, config))
            self._add_due_reviews(schedule, target, items)

        if use_cache:
            self.cache.put(cache_key, items, schedule)

        return schedule

    def _placeholder_tasks(
        self,
        target: date,
        items: Sequence[MemorizationItem],
        config: ProgressionConfig,
    ) -> list[Task]:
        """
        Tasks for the unit scheduled on target when it is not stored yet.

        An archived item still counts as stored.

        One unit per day: the unit for day N of the progression is N + 1,
        and only while the progression has units left.
        """
        days_since_start = days_between(target, config.start_date)
        if days_since_start < 0 or days_since_start >= config.total_units:
            return []

        sequence_number = days_since_start + 1
        for item in items:
            if (
                item.sequence_number == sequence_number
                and item.unit_type == config.unit_type
                and item.date_memorized == target
            ):
                return []

        target_key = to_key(target)
        placeholder = MemorizationItem(
            id=f"new-{target_key}-{sequence_number}",
            unit_type=config.unit_type,
            sequence_number=sequence_number,
            date_memorized=target,
            content_reference=format_content_reference(
                config.unit_type, config.unit_number(sequence_number)
            ),
            progression_name=config.progression_name,
        )
        return [
            Task(
                item=placeholder,
                priority=TaskPriority.NEW,
                station=station,
                time_of_day=_same_day_time(station),
                is_placeholder=True,
            )
            for station in SAME_DAY_STATIONS
        ]

    def _add_due_reviews(
        self,
        schedule: DailySchedule,
        target: date,
        items: Sequence[MemorizationItem],
    ) -> None:
        """Route every due station review of every active item."""
        for item in items:
            if not item.is_active or item.date_memorized is None:
                continue

            for review in get_reviews_due_on_date(item, target):
                if review.station in SAME_DAY_STATIONS:
                    schedule.new_memorization.append(Task(
                        item=item,
                        priority=TaskPriority.NEW,
                        station=review.station,
                        time_of_day=review.time_of_day,
                    ))
                elif review.station == YESTERDAY_STATION:
                    schedule.yesterday_review.append(Task(
                        item=item,
                        priority=TaskPriority.YESTERDAY,
                        station=review.station,
                    ))
                else:
                    schedule.spaced_review.append(Task(
                        item=item,
                        priority=TaskPriority.SPACED,
                        station=review.station,
                    ))
