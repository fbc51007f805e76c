"""
Delivery Module - Persistence, day planning and the terminal interface.

Components:
- ItemStore: SQLite persistence for config, items, completions and the queue
- TodayPlanner: Merges schedule, catch-up and overdue tasks into one list
- cli: The `hifz` typer application
"""

from hifz_planner.delivery.item_store import ItemStore
from hifz_planner.delivery.today import DayPlan, TodayPlanner

__all__ = [
    "DayPlan",
    "ItemStore",
    "TodayPlanner",
]
