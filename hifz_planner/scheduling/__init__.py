"""
Scheduling Module - Due-task computation and backlog redistribution.

Components:
- ScheduleEngine: Tasks due on any date, memoized per date
- BacklogManager: Overdue detection, queue building and pruning
- progress: Completion statistics and calendar counts
"""

from hifz_planner.scheduling.backlog import BacklogManager
from hifz_planner.scheduling.progress import (
    ProgressStats,
    filter_by_progression,
    get_next_unit_number,
    get_progress_stats,
    get_task_counts_for_month,
    group_by_progression,
)
from hifz_planner.scheduling.schedule_engine import (
    CacheKey,
    ScheduleCache,
    ScheduleEngine,
    calculate_review_dates,
    format_content_reference,
    get_review_date_for_station,
    get_reviews_due_on_date,
    is_review_due,
)

__all__ = [
    "BacklogManager",
    "CacheKey",
    "ProgressStats",
    "ScheduleCache",
    "ScheduleEngine",
    "calculate_review_dates",
    "filter_by_progression",
    "format_content_reference",
    "get_next_unit_number",
    "get_progress_stats",
    "get_review_date_for_station",
    "get_reviews_due_on_date",
    "get_task_counts_for_month",
    "group_by_progression",
    "is_review_due",
]
