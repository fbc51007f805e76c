"""
Domain errors for hifz-planner.

Philosophy:
- Normal edge cases degrade (empty schedule, skipped entries)
- Caller-input validation failures raise eagerly, never coerced silently
"""


class HifzPlannerError(Exception):
    """Base class for all hifz-planner errors."""
    pass


class InvalidDateError(HifzPlannerError, ValueError):
    """Raised when a value cannot be interpreted as a calendar date."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


class MalformedQueueError(HifzPlannerError):
    """Raised when a persisted backlog queue does not match the expected schema."""

    def __init__(self, message: str, errors: list | None = None):
        self.errors = errors or []
        super().__init__(message)


class InvalidExportError(HifzPlannerError, ValueError):
    """Raised when data handed to import does not have the export's shape."""
    pass
