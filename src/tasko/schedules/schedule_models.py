# src/tasko/schedules/schedule_models.py

"""
Weekly schedules and their recurring slots.

A Slot is the single canonical shape for a recurring weekly interval: a set of
weekdays (Sunday=0) plus an HH:MM start/end pair with start < end. Older
single-day payloads ("dayOfWeek", "activityName", ...) are folded into this
shape by normalize_slot_payload().
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..errors import ValidationError
from ..tasks.task_models import Priority
from ..timeutil import parse_clock


class Cadence(StrEnum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def from_db(cls, raw: str | None) -> Cadence | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(slots=True)
class WeeklySchedule:
    id: str
    name: str
    description: str | None
    is_active: bool
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(slots=True)
class Slot:
    id: str
    schedule_id: str
    name: str
    description: str | None
    days_of_week: tuple[int, ...]
    start_time: str
    end_time: str
    priority: Priority
    color: str | None
    is_recurring: bool
    cadence: Cadence | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scheduleId": self.schedule_id,
            "name": self.name,
            "description": self.description,
            "daysOfWeek": list(self.days_of_week),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "priority": self.priority.value,
            "color": self.color,
            "isRecurring": self.is_recurring,
            "recurrencePattern": self.cadence.value if self.cadence else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def parse_days(raw: Any) -> tuple[int, ...]:
    if not isinstance(raw, (list, tuple, set)) or not raw:
        raise ValidationError("daysOfWeek must be a non-empty array")
    days: set[int] = set()
    for d in raw:
        # bool is an int subclass; reject it explicitly
        if isinstance(d, bool) or not isinstance(d, int) or d < 0 or d > 6:
            raise ValidationError("Each day must be a number between 0-6")
        days.add(d)
    return tuple(sorted(days))


def parse_flag(raw: Any, *, field: str, default: bool = False) -> bool:
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ValidationError(f"{field} must be true or false")
    return raw


def parse_cadence(raw: Any) -> Cadence:
    try:
        return Cadence(raw)
    except ValueError:
        raise ValidationError("Recurrence pattern must be weekly, biweekly, or monthly") from None


def validate_slot_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a complete set of slot fields (after merging any partial update).

    Returns a normalized copy. Enforces start_time < end_time and the
    recurring <-> cadence rule (recurring without a cadence means weekly;
    a non-recurring slot carries no cadence).
    """
    out = dict(fields)

    name = out.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Slot name is required")
    out["name"] = name.strip()

    desc = out.get("description")
    out["description"] = desc.strip() if isinstance(desc, str) and desc.strip() else None

    out["days_of_week"] = parse_days(out.get("days_of_week"))
    out["start_time"] = parse_clock(out.get("start_time"), field="startTime")
    out["end_time"] = parse_clock(out.get("end_time"), field="endTime")
    if out["start_time"] >= out["end_time"]:
        raise ValidationError("Start time must be before end time")

    out["priority"] = Priority.parse(out.get("priority") or "medium")

    is_recurring = parse_flag(out.get("is_recurring"), field="isRecurring")
    cadence = out.get("cadence")
    if is_recurring:
        out["cadence"] = parse_cadence(cadence) if cadence else Cadence.WEEKLY
    else:
        if cadence:
            parse_cadence(cadence)
        out["cadence"] = None
    out["is_recurring"] = is_recurring

    return out


# JSON field -> internal field. Legacy names come after the canonical ones.
_SLOT_FIELD_MAP = {
    "name": "name",
    "activityName": "name",
    "description": "description",
    "activityDescription": "description",
    "daysOfWeek": "days_of_week",
    "startTime": "start_time",
    "endTime": "end_time",
    "priority": "priority",
    "color": "color",
    "isRecurring": "is_recurring",
    "recurrencePattern": "cadence",
}


def normalize_slot_payload(body: dict[str, Any]) -> dict[str, Any]:
    """
    Map a JSON body onto internal slot field names (only keys present in body).

    A legacy single "dayOfWeek" integer becomes days_of_week=[day].
    """
    out: dict[str, Any] = {}
    for key, field in _SLOT_FIELD_MAP.items():
        if key in body and field not in out:
            out[field] = body[key]

    if "days_of_week" not in out and "dayOfWeek" in body:
        out["days_of_week"] = [body["dayOfWeek"]]

    return out
