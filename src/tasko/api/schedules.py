# src/tasko/api/schedules.py

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint

from ..errors import NotFoundError, ValidationError
from ..schedules.schedule_models import normalize_slot_payload, parse_flag
from ..timeutil import parse_date, to_iso
from .responses import get_state, json_body, ok, ok_list, optional_text

logger = logging.getLogger(__name__)

bp = Blueprint("schedules", __name__)


# ---- schedules ----


@bp.get("")
def list_schedules():
    items = get_state().schedule_store.list_schedules()
    return ok_list([s.to_dict() for s in items])


@bp.post("")
def create_schedule():
    body = json_body()
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Schedule name is required")
    schedule = get_state().schedule_store.create_schedule(
        name=name,
        description=optional_text(body, "description"),
        is_active=parse_flag(body.get("isActive"), field="isActive", default=True),
    )
    return ok(schedule.to_dict(), message="Schedule created successfully", status=201)


# Literal paths are registered before "/<schedule_id>"; werkzeug also ranks
# static segments ahead of converters.


@bp.get("/current/activity")
def current_activity():
    slot = get_state().resolver.current_slot()
    return ok(slot.to_dict() if slot else None)


@bp.get("/next/activity")
def next_activity():
    found = get_state().resolver.next_slot_with_start()
    if found is None:
        return ok(None)
    slot, starts_at = found
    return ok({**slot.to_dict(), "startsAt": to_iso(starts_at)})


@bp.get("/weekly/view")
def weekly_view():
    slots = get_state().resolver.weekly_view()
    return ok_list([s.to_dict() for s in slots])


@bp.get("/slots/<slot_id>")
def get_slot(slot_id: str):
    slot = get_state().schedule_store.get_slot(slot_id)
    if slot is None:
        raise NotFoundError("Schedule slot not found")
    return ok(slot.to_dict())


@bp.put("/slots/<slot_id>")
def update_slot(slot_id: str):
    changes = normalize_slot_payload(json_body())
    slot = get_state().schedule_store.update_slot(slot_id, **changes)
    if slot is None:
        raise NotFoundError("Schedule slot not found")
    return ok(slot.to_dict(), message="Schedule slot updated successfully")


@bp.delete("/slots/<slot_id>")
def delete_slot(slot_id: str):
    if not get_state().schedule_store.delete_slot(slot_id):
        raise NotFoundError("Schedule slot not found")
    return ok(message="Schedule slot deleted successfully")


@bp.get("/<schedule_id>")
def get_schedule(schedule_id: str):
    store = get_state().schedule_store
    schedule = store.get_schedule(schedule_id)
    if schedule is None:
        raise NotFoundError("Schedule not found")
    data: dict[str, Any] = schedule.to_dict()
    data["slots"] = [s.to_dict() for s in store.list_slots(schedule_id)]
    return ok(data)


@bp.put("/<schedule_id>")
def update_schedule(schedule_id: str):
    body = json_body()
    changes: dict[str, Any] = {}
    if "name" in body:
        changes["name"] = body["name"]
    if "description" in body:
        changes["description"] = optional_text(body, "description")
    if body.get("isActive") is not None:
        changes["is_active"] = parse_flag(body["isActive"], field="isActive")

    schedule = get_state().schedule_store.update_schedule(schedule_id, **changes)
    if schedule is None:
        raise NotFoundError("Schedule not found")
    return ok(schedule.to_dict(), message="Schedule updated successfully")


@bp.delete("/<schedule_id>")
def delete_schedule(schedule_id: str):
    if not get_state().schedule_store.delete_schedule(schedule_id):
        raise NotFoundError("Schedule not found")
    return ok(message="Schedule deleted successfully")


# ---- slots of a schedule ----


@bp.get("/<schedule_id>/slots")
def list_slots(schedule_id: str):
    store = get_state().schedule_store
    if store.get_schedule(schedule_id) is None:
        raise NotFoundError("Schedule not found")
    return ok_list([s.to_dict() for s in store.list_slots(schedule_id)])


@bp.post("/<schedule_id>/slots")
def create_slot(schedule_id: str):
    fields = normalize_slot_payload(json_body())
    slot = get_state().schedule_store.create_slot(schedule_id, **fields)
    return ok(slot.to_dict(), message="Schedule slot created successfully", status=201)


@bp.post("/<schedule_id>/generate-tasks")
def generate_tasks(schedule_id: str):
    body = json_body()
    if not body.get("startDate") or not body.get("endDate"):
        raise ValidationError("startDate and endDate are required")
    start = parse_date(body["startDate"], field="startDate")
    end = parse_date(body["endDate"], field="endDate")
    if end < start:
        raise ValidationError("endDate must not be before startDate")

    state = get_state()
    if state.schedule_store.get_schedule(schedule_id) is None:
        raise NotFoundError("Schedule not found")

    tasks = state.generator.generate_for_schedule(schedule_id, start, end)
    logger.info("Generated %d task(s) for schedule %s (%s..%s)", len(tasks), schedule_id, start, end)
    return ok_list(
        [t.to_dict() for t in tasks],
        message=f"{len(tasks)} tasks generated from schedule",
    )
