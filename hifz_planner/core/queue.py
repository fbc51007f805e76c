"""
Backlog queue wire model.

The persisted queue shape is a stable contract: queues saved by older
versions must keep loading. Unknown fields are ignored; missing or
mistyped required fields are rejected with MalformedQueueError rather
than silently dropping a user's backlog.

    {
        "version": 1,
        "created_at": "2025-01-08T09:12:00",
        "spread_days": 5,
        "daily_capacity": 10,
        "total_items": 12,
        "items": [
            {"item_id": "...", "station": 4, "original_due_date": "2025-01-05",
             "rescheduled_date": "2025-01-08", "status": "pending"}
        ]
    }
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import MalformedQueueError

QUEUE_VERSION = 1


class QueueEntryStatus(str, Enum):
    """Lifecycle of a queued catch-up review."""

    PENDING = "pending"
    COMPLETED = "completed"


class QueueEntry(BaseModel):
    """One overdue review placed on a future day."""

    model_config = ConfigDict(extra="ignore")

    item_id: str = Field(min_length=1)
    station: int = Field(ge=3, le=7)
    original_due_date: str
    rescheduled_date: str
    status: QueueEntryStatus

    @field_validator("original_due_date", "rescheduled_date")
    @classmethod
    def _check_date_key(cls, value: str) -> str:
        if len(value) != 10:
            raise ValueError("expected YYYY-MM-DD")
        date.fromisoformat(value)
        return value

    @property
    def key(self) -> tuple[str, int]:
        return (self.item_id, self.station)

    @property
    def is_pending(self) -> bool:
        return self.status == QueueEntryStatus.PENDING


class BacklogQueue(BaseModel):
    """A generation of redistributed overdue reviews."""

    model_config = ConfigDict(extra="ignore")

    version: int = QUEUE_VERSION
    created_at: str | None = None
    spread_days: int = Field(ge=1)
    daily_capacity: int = Field(ge=1)
    total_items: int = Field(ge=0)
    items: list[QueueEntry]

    @classmethod
    def from_wire(cls, data: Any) -> BacklogQueue:
        """
        Validate a persisted queue.

        Raises:
            MalformedQueueError: If the data does not match the queue schema
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedQueueError(
                f"Stored backlog queue is malformed ({e.error_count()} errors)",
                errors=e.errors(),
            ) from e

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def is_empty(self) -> bool:
        return not self.items

    def pending_entries(self) -> list[QueueEntry]:
        return [e for e in self.items if e.is_pending]
