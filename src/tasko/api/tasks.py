# src/tasko/api/tasks.py

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, request

from ..errors import NotFoundError, ValidationError
from ..tasks.task_models import Priority, TaskStatus
from ..timeutil import now_iso, parse_clock, parse_datetime, to_iso
from .responses import get_state, json_body, ok, ok_list, optional_text

logger = logging.getLogger(__name__)

bp = Blueprint("tasks", __name__)


def _due(raw: Any) -> str | None:
    if raw is None or raw == "":
        return None
    return to_iso(parse_datetime(raw, field="dueDate"))


def _reminder(raw: Any) -> str | None:
    """HH:MM (relative to the due date) or a full timestamp."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, str) and ":" in raw and len(raw.strip()) <= 5:
        return parse_clock(raw, field="reminderTime")
    return to_iso(parse_datetime(raw, field="reminderTime"))


@bp.get("")
def list_tasks():
    store = get_state().task_store
    args = request.args
    status = TaskStatus.parse(args["status"]) if args.get("status") else None
    priority = Priority.parse(args["priority"]) if args.get("priority") else None
    tasks = store.list_tasks(
        status=status,
        priority=priority,
        category=args.get("category") or None,
        search=args.get("search") or None,
    )
    return ok_list([t.to_dict() for t in tasks])


@bp.post("")
def create_task():
    body = json_body()
    title = body.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")

    task = get_state().task_store.add_task(
        title=title,
        description=optional_text(body, "description"),
        due_at=_due(body.get("dueDate")),
        reminder_time=_reminder(body.get("reminderTime")),
        priority=Priority.parse(body.get("priority") or "medium"),
        status=TaskStatus.parse(body.get("status") or "pending"),
        category=optional_text(body, "category"),
    )
    logger.info("Task created id=%s title=%r", task.id, task.title)
    return ok(task.to_dict(), message="Task created successfully", status=201)


@bp.get("/stats")
def task_stats():
    return ok(get_state().task_store.stats(now=now_iso()))


@bp.get("/status/<status>")
def tasks_by_status(status: str):
    try:
        parsed = TaskStatus(status)
    except ValueError:
        raise ValidationError(
            "Invalid status. Must be pending, in_progress, or completed"
        ) from None
    tasks = get_state().task_store.list_tasks(status=parsed)
    return ok_list([t.to_dict() for t in tasks])


@bp.get("/overdue")
def overdue_tasks():
    tasks = get_state().task_store.list_overdue(now=now_iso())
    return ok_list([t.to_dict() for t in tasks])


@bp.get("/reminders")
def tasks_with_reminders():
    tasks = get_state().task_store.list_with_reminders()
    return ok_list([t.to_dict() for t in tasks])


@bp.get("/<task_id>")
def get_task(task_id: str):
    task = get_state().task_store.get_task(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return ok(task.to_dict())


@bp.put("/<task_id>")
def update_task(task_id: str):
    body = json_body()
    changes: dict[str, Any] = {}

    if "title" in body:
        changes["title"] = body["title"]
    if "description" in body:
        changes["description"] = optional_text(body, "description")
    if "dueDate" in body:
        changes["due_at"] = _due(body["dueDate"])
    if "reminderTime" in body:
        changes["reminder_time"] = _reminder(body["reminderTime"])
    if "priority" in body:
        changes["priority"] = Priority.parse(body["priority"])
    if "status" in body:
        changes["status"] = TaskStatus.parse(body["status"])
    if "category" in body:
        changes["category"] = optional_text(body, "category")

    task = get_state().task_store.update_task(task_id, **changes)
    if task is None:
        raise NotFoundError("Task not found")
    return ok(task.to_dict(), message="Task updated successfully")


@bp.delete("/<task_id>")
def delete_task(task_id: str):
    if not get_state().task_store.delete_task(task_id):
        raise NotFoundError("Task not found")
    return ok(message="Task deleted successfully")
