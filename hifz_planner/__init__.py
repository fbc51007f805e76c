"""
hifz-planner: spaced-repetition memorization planner.

Schedules one new unit per day, its same-day and next-day repetitions,
and four spaced reviews, and spreads missed reviews over the coming
days when they pile up.
"""

__version__ = "1.0.0"
