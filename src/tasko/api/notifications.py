# src/tasko/api/notifications.py

from __future__ import annotations

from flask import Blueprint

from ..errors import NotFoundError, ValidationError
from ..tasks.task_models import NotificationType
from .responses import get_state, json_body, ok, ok_list

bp = Blueprint("notifications", __name__)


@bp.get("")
def list_notifications():
    items = get_state().task_store.list_notifications()
    return ok_list([n.to_dict() for n in items])


@bp.post("")
def create_notification():
    """Manual notification (internal use). taskId is optional but must exist when given."""
    body = json_body()
    task_id = body.get("taskId") or None
    raw_type = body.get("type")
    message = body.get("message")

    if not raw_type or not isinstance(message, str) or not message.strip():
        raise ValidationError("type and message are required")
    ntype = NotificationType.parse(raw_type)

    store = get_state().task_store
    if task_id is not None and store.get_task(str(task_id)) is None:
        raise NotFoundError("Task not found")

    notification = store.create_notification(
        task_id=str(task_id) if task_id is not None else None,
        type=ntype,
        message=message,
    )
    data = notification.to_dict() if notification is not None else None
    return ok(data, message="Notification created successfully", status=201)


@bp.get("/count")
def notification_count():
    return ok(get_state().task_store.count_notifications())


@bp.get("/unread")
def unread_notifications():
    items = get_state().task_store.list_unread_notifications()
    return ok_list([n.to_dict() for n in items])


@bp.get("/task/<task_id>")
def notifications_by_task(task_id: str):
    items = get_state().task_store.list_notifications_by_task(task_id)
    return ok_list([n.to_dict() for n in items])


@bp.put("/read-all")
def mark_all_read():
    count = get_state().task_store.mark_all_notifications_read()
    return ok({"count": count}, message=f"{count} notifications marked as read")


@bp.get("/<notification_id>")
def get_notification(notification_id: str):
    n = get_state().task_store.get_notification(notification_id)
    if n is None:
        raise NotFoundError("Notification not found")
    return ok(n.to_dict())


@bp.put("/<notification_id>/read")
def mark_read(notification_id: str):
    n = get_state().task_store.mark_notification_read(notification_id)
    if n is None:
        raise NotFoundError("Notification not found")
    return ok(n.to_dict(), message="Notification marked as read")


@bp.delete("/<notification_id>")
def delete_notification(notification_id: str):
    if not get_state().task_store.delete_notification(notification_id):
        raise NotFoundError("Notification not found")
    return ok(message="Notification deleted successfully")
