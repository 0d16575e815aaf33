# src/tasko/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..errors import ValidationError


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    @classmethod
    def parse(cls, raw: Any) -> TaskStatus:
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError("Status must be pending, in_progress, or completed") from None


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        try:
            return cls(raw or "medium")
        except ValueError:
            return cls.MEDIUM

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError("Priority must be low, medium, or high") from None


class NotificationType(StrEnum):
    REMINDER = "reminder"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    ACTIVITY_CHANGE = "activity_change"

    @classmethod
    def parse(cls, raw: Any) -> NotificationType:
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError(
                "Type must be reminder, overdue, due_soon, or activity_change"
            ) from None


SCHEDULED_CATEGORY = "scheduled"


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str | None
    due_at: str | None
    reminder_time: str | None
    priority: Priority
    status: TaskStatus
    category: str | None
    created_at: str
    updated_at: str

    # Set on tasks generated from a recurring slot.
    slot_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_at,
            "reminderTime": self.reminder_time,
            "priority": self.priority.value,
            "status": self.status.value,
            "category": self.category,
            "slotId": self.slot_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(slots=True)
class Notification:
    id: str
    task_id: str | None
    type: NotificationType
    message: str
    is_read: bool
    created_at: str
    dedup_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "type": self.type.value,
            "message": self.message,
            "isRead": self.is_read,
            "createdAt": self.created_at,
        }
