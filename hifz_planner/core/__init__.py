"""
Core Module - Shared domain models and date arithmetic.

Components:
- dates: Local calendar dates, review-key formatting, Clock
- models: Items, progression config, stations, tasks, overdue entries
- queue: Persisted backlog queue schema
- exceptions: Domain errors

Design Principle:
Scheduling and delivery modules import from hifz_planner.core rather
than reimplementing date handling or station tables.
"""

from hifz_planner.core.dates import (
    Clock,
    FixedClock,
    SystemClock,
    add_days,
    days_between,
    normalize,
    to_key,
)
from hifz_planner.core.exceptions import (
    HifzPlannerError,
    InvalidDateError,
    InvalidExportError,
    MalformedQueueError,
)
from hifz_planner.core.models import (
    STATION_OFFSETS,
    CatchupTask,
    DailySchedule,
    ItemStatus,
    MemorizationItem,
    OverdueEntry,
    ProgressionConfig,
    QueueStats,
    ReviewDate,
    ReviewDue,
    Task,
    TaskPriority,
    TimeOfDay,
    UnitType,
    review_key,
)
from hifz_planner.core.queue import BacklogQueue, QueueEntry, QueueEntryStatus

__all__ = [
    # Dates
    "Clock",
    "FixedClock",
    "SystemClock",
    "add_days",
    "days_between",
    "normalize",
    "to_key",
    # Errors
    "HifzPlannerError",
    "InvalidDateError",
    "InvalidExportError",
    "MalformedQueueError",
    # Models
    "STATION_OFFSETS",
    "CatchupTask",
    "DailySchedule",
    "ItemStatus",
    "MemorizationItem",
    "OverdueEntry",
    "ProgressionConfig",
    "QueueStats",
    "ReviewDate",
    "ReviewDue",
    "Task",
    "TaskPriority",
    "TimeOfDay",
    "UnitType",
    "review_key",
    # Queue
    "BacklogQueue",
    "QueueEntry",
    "QueueEntryStatus",
]
