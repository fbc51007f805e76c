"""
Domain model for the memorization planner.

Review stations:
    Station 1 - memorization day, morning
    Station 2 - memorization day, evening
    Station 3 - next day ("yesterday's" unit)
    Station 4-7 - spaced reviews at day 4, 11, 25 and 55

A review is recorded as a review key "{station}-{YYYY-MM-DD}", the only
completion record the planner trusts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any

from loguru import logger

from .dates import DateLike, normalize, to_key

# =============================================================================
# Stations
# =============================================================================

STATION_OFFSETS: tuple[int, ...] = (0, 0, 1, 4, 11, 25, 55)

STATION_MIN = 1
STATION_MAX = 7
SAME_DAY_STATIONS = (1, 2)
YESTERDAY_STATION = 3

# Stations 1 and 2 are day-0 memorization tasks and never become backlog
BACKLOG_STATIONS = (3, 4, 5, 6, 7)

# Lower number = surfaced first when catching up
BACKLOG_STATION_PRIORITY: dict[int, int] = {3: 1, 4: 2, 5: 3, 6: 4, 7: 5}
UNRANKED_STATION_PRIORITY = 99


def station_offset(station: int) -> int:
    """Day offset of a station from the memorization date."""
    if not STATION_MIN <= station <= STATION_MAX:
        raise ValueError(f"Station must be between {STATION_MIN} and {STATION_MAX}, got {station}")
    return STATION_OFFSETS[station - 1]


def review_key(station: int, when: DateLike) -> str:
    """Build the completion key for a station on a date."""
    return f"{station}-{to_key(when)}"


def make_item_id(unit_type: str, sequence_number: int, date_memorized: DateLike) -> str:
    """Stable item id derived from unit type, sequence number and date."""
    return f"item-{unit_type}-{sequence_number}-{to_key(date_memorized)}"


# =============================================================================
# Enums
# =============================================================================


class ItemStatus(str, Enum):
    """Lifecycle of a memorization item."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class TimeOfDay(str, Enum):
    """When in the day a review is expected."""

    MORNING = "morning"
    EVENING = "evening"
    ANY = "any"


class UnitType(str, Enum):
    """Size of the unit memorized per day."""

    PAGE = "page"
    VERSE = "verse"
    HIZB = "hizb"
    JUZ = "juz"


class TaskPriority(IntEnum):
    """
    Display priority of a task.

    Lower numbers are listed first. CATCHUP is listed last even though
    catch-up reviews are the most overdue work of the day.
    """

    NEW = 1
    YESTERDAY = 2
    SPACED = 3
    CATCHUP = 4


# =============================================================================
# Items & Config
# =============================================================================


@dataclass
class MemorizationItem:
    """
    A unit the user memorized on a given day.

    Owned by the ItemStore; scheduling code only reads snapshots.
    """

    id: str
    unit_type: str
    sequence_number: int
    date_memorized: date
    content_reference: str
    status: ItemStatus = ItemStatus.ACTIVE
    reviews_completed: set[str] = field(default_factory=set)
    reviews_missed: set[str] = field(default_factory=set)  # Advisory only
    progression_name: str = ""
    archived_at: datetime | None = None

    @classmethod
    def create(
        cls,
        unit_type: str,
        sequence_number: int,
        date_memorized: DateLike,
        content_reference: str,
        progression_name: str = "",
    ) -> MemorizationItem:
        """Create a fresh active item with its stable id."""
        memorized = normalize(date_memorized)
        return cls(
            id=make_item_id(unit_type, sequence_number, memorized),
            unit_type=unit_type,
            sequence_number=sequence_number,
            date_memorized=memorized,
            content_reference=content_reference,
            progression_name=progression_name,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE

    @property
    def date_key(self) -> str:
        return to_key(self.date_memorized)

    def has_completed(self, station: int, when: DateLike) -> bool:
        """Check whether the review for station on `when` is recorded."""
        return review_key(station, when) in self.reviews_completed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "unit_type": self.unit_type,
            "sequence_number": self.sequence_number,
            "date_memorized": self.date_key,
            "content_reference": self.content_reference,
            "status": self.status.value,
            "reviews_completed": sorted(self.reviews_completed),
            "reviews_missed": sorted(self.reviews_missed),
            "progression_name": self.progression_name,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemorizationItem:
        """
        Create an item from a dictionary (JSON export or database row).

        Raises:
            InvalidDateError: If date_memorized is not a valid date
            KeyError: If a required field is missing
        """
        archived_at = data.get("archived_at")
        if isinstance(archived_at, str):
            archived_at = datetime.fromisoformat(archived_at)

        return cls(
            id=data["id"],
            unit_type=data["unit_type"],
            sequence_number=int(data["sequence_number"]),
            date_memorized=normalize(data["date_memorized"]),
            content_reference=data.get("content_reference", ""),
            status=ItemStatus(data.get("status", ItemStatus.ACTIVE.value)),
            reviews_completed=set(data.get("reviews_completed") or []),
            reviews_missed=set(data.get("reviews_missed") or []),
            progression_name=data.get("progression_name") or "",
            archived_at=archived_at,
        )


@dataclass(frozen=True)
class ProgressionConfig:
    """
    User's memorization plan: one unit per day from start_date.

    Immutable for the duration of a schedule computation.
    """

    start_date: date | None
    total_units: int = 30
    unit_type: str = UnitType.PAGE.value
    morning_hour: int = 6
    evening_hour: int = 20

    # Page units may be fractional: unit n covers start_page + (n - 1) * unit_size
    start_page: float = 1
    unit_size: float | None = None
    progression_name: str = ""

    @property
    def start_key(self) -> str | None:
        return to_key(self.start_date) if self.start_date else None

    def unit_number(self, sequence_number: int) -> float:
        """Displayed unit number for the n-th memorized unit."""
        if self.unit_type != UnitType.PAGE.value:
            return sequence_number
        return self.start_page + (sequence_number - 1) * (self.unit_size or 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_key,
            "total_units": self.total_units,
            "unit_type": self.unit_type,
            "morning_hour": self.morning_hour,
            "evening_hour": self.evening_hour,
            "start_page": self.start_page,
            "unit_size": self.unit_size,
            "progression_name": self.progression_name,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        defaults: dict[str, Any] | None = None,
    ) -> ProgressionConfig:
        """
        Build a config from stored values, filling gaps from defaults.

        Hours outside 0-23 fall back to the defaults with a warning.

        Raises:
            InvalidDateError: If start_date is present but not a valid date
        """
        defaults = defaults or {}
        raw_start = data.get("start_date")
        start_date = normalize(raw_start) if raw_start not in (None, "") else None

        def _hour(name: str, fallback: int) -> int:
            value = data.get(name)
            if value is None:
                return defaults.get(name, fallback)
            if isinstance(value, int) and 0 <= value <= 23:
                return value
            logger.warning(f"Ignoring out-of-range {name}={value!r}, using default")
            return defaults.get(name, fallback)

        unit_type = data.get("unit_type") or defaults.get("unit_type", UnitType.PAGE.value)
        total_units = data.get("total_units") or defaults.get("total_units", 30)

        return cls(
            start_date=start_date,
            total_units=int(total_units),
            unit_type=unit_type,
            morning_hour=_hour("morning_hour", 6),
            evening_hour=_hour("evening_hour", 20),
            start_page=data.get("start_page") or 1,
            unit_size=data.get("unit_size") if unit_type == UnitType.PAGE.value else None,
            progression_name=data.get("progression_name") or "",
        )


# =============================================================================
# Schedule Output
# =============================================================================


@dataclass(frozen=True)
class ReviewDue:
    """A station whose review falls on a queried date."""

    station: int
    time_of_day: TimeOfDay


@dataclass(frozen=True)
class ReviewDate:
    """The calendar date of one station's review."""

    station: int
    date_key: str
    time_of_day: TimeOfDay


@dataclass
class Task:
    """One row of a day's plan, as handed to the renderer."""

    item: MemorizationItem
    priority: TaskPriority
    station: int
    time_of_day: TimeOfDay = TimeOfDay.ANY
    is_completed: bool = False
    is_catchup: bool = False
    is_overdue: bool = False
    days_overdue: int = 0
    original_due_date: str | None = None

    # Synthesized for a unit that has no stored item yet
    is_placeholder: bool = False

    @property
    def key(self) -> tuple[str, int]:
        return (self.item.id, self.station)

    def review_date_key(self, date_key: str) -> str:
        """Date whose review key records this task's completion."""
        if (self.is_catchup or self.is_overdue) and self.original_due_date:
            return self.original_due_date
        return date_key


@dataclass
class DailySchedule:
    """Tasks due on one date, grouped the way the day is worked through."""

    new_memorization: list[Task] = field(default_factory=list)
    yesterday_review: list[Task] = field(default_factory=list)
    spaced_review: list[Task] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.new_memorization or self.yesterday_review or self.spaced_review)

    def all_tasks(self) -> list[Task]:
        return [*self.new_memorization, *self.yesterday_review, *self.spaced_review]

    def counts(self) -> dict[str, int]:
        return {
            "new_memorization": len(self.new_memorization),
            "yesterday_review": len(self.yesterday_review),
            "spaced_review": len(self.spaced_review),
        }


# =============================================================================
# Backlog
# =============================================================================


@dataclass(frozen=True)
class OverdueEntry:
    """A review whose due date passed without completion."""

    item_id: str
    station: int
    original_due_date: str
    days_overdue: int
    station_priority: int

    @property
    def key(self) -> tuple[str, int]:
        return (self.item_id, self.station)


@dataclass(frozen=True)
class CatchupTask:
    """A queued backlog entry surfaced on its rescheduled day."""

    item: MemorizationItem
    station: int
    original_due_date: str
    is_catchup: bool = True


@dataclass(frozen=True)
class QueueStats:
    """Progress through a backlog queue."""

    total: int
    remaining: int

    @property
    def completed(self) -> int:
        return max(0, self.total - self.remaining)

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.completed * 100 / self.total)
