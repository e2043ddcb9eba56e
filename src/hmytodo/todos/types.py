"""Todo subsystem public types."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum, StrEnum
from typing import Any

from hmytodo.store.types import Document, Record, Timestamp

TODOS_COLLECTION = "todos"

# Fixed completion window; not user-configurable.
DEADLINE_WINDOW = timedelta(hours=24)


class TodoStatus(StrEnum):
    """Allowed todo statuses. COMPLETED and MISSED are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self is not TodoStatus.ACTIVE


class TodoFilter(StrEnum):
    """View criteria for filter_todos()."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"


@dataclass(frozen=True)
class Todo:
    """A single todo item as seen by the engine."""

    id: str
    title: str
    owner: str
    created_at: datetime
    deadline: datetime
    status: TodoStatus = TodoStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == TodoStatus.ACTIVE

    def with_status(self, status: TodoStatus) -> Todo:
        return replace(self, status=status)

    def to_record(self) -> Record:
        """Encode for the store. The id lives in the document key, not the body."""
        return {
            "title": self.title,
            "owner": self.owner,
            "created_at": Timestamp.from_datetime(self.created_at),
            "deadline": Timestamp.from_datetime(self.deadline),
            "status": self.status.value,
        }

    @classmethod
    def from_document(cls, doc: Document) -> Todo:
        data = doc.data
        return cls(
            id=doc.id,
            title=str(data.get("title", "")),
            owner=str(data["owner"]),
            created_at=_to_datetime(data["created_at"]),
            deadline=_to_datetime(data["deadline"]),
            status=TodoStatus(data.get("status", TodoStatus.ACTIVE.value)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "owner": self.owner,
            "created_at": self.created_at.isoformat(),
            "deadline": self.deadline.isoformat(),
            "status": self.status.value,
        }


class Expired(Enum):
    """Marker returned by time_remaining() once the deadline has passed."""

    EXPIRED = "expired"

    def __str__(self) -> str:
        return "Expired"


EXPIRED = Expired.EXPIRED


@dataclass(frozen=True)
class TimeRemaining:
    """Whole hours and minutes left before a deadline (truncated)."""

    hours: int
    minutes: int

    def __str__(self) -> str:
        return f"{self.hours}h {self.minutes}m remaining"


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, Timestamp):
        return value.to_datetime()
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
