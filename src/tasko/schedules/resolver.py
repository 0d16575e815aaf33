# src/tasko/schedules/resolver.py

"""
Schedule resolver.

Answers "which slot is active right now" and "which slot comes next" across
every active schedule. Pure reads over the ScheduleRepo port.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import StrEnum

from ..core.ports import ScheduleRepo
from ..timeutil import WEEK, clock_of, clock_to_time, day_of_week
from .schedule_models import Slot

logger = logging.getLogger(__name__)


class OverlapPolicy(StrEnum):
    """How current_slot() picks among overlapping matches."""

    FIRST = "first"  # first match in schedule/slot creation order
    PRIORITY = "priority"  # highest priority, then earliest created


def slot_is_active_at(slot: Slot, now: datetime) -> bool:
    clock = clock_of(now)
    return day_of_week(now) in slot.days_of_week and slot.start_time <= clock < slot.end_time


def current_slot(
    slots: Iterable[Slot],
    now: datetime,
    policy: OverlapPolicy = OverlapPolicy.PRIORITY,
) -> Slot | None:
    best: Slot | None = None
    for slot in slots:
        if not slot_is_active_at(slot, now):
            continue
        if policy == OverlapPolicy.FIRST:
            return slot
        # strict ">" keeps the earlier slot on equal priority
        if best is None or slot.priority.rank > best.priority.rank:
            best = slot
    return best


def next_occurrence(slot: Slot, now: datetime) -> datetime | None:
    """
    Earliest start of this slot strictly after now.

    A weekday whose start already passed today rolls over to next week.
    """
    start = clock_to_time(slot.start_time)
    today = day_of_week(now)
    best: datetime | None = None
    for day in slot.days_of_week:
        ahead = (day - today) % 7
        candidate = datetime.combine(now.date() + timedelta(days=ahead), start)
        if candidate <= now:
            candidate += WEEK
        if best is None or candidate < best:
            best = candidate
    return best


def next_slot(slots: Iterable[Slot], now: datetime) -> tuple[Slot, datetime] | None:
    best: tuple[Slot, datetime] | None = None
    for slot in slots:
        at = next_occurrence(slot, now)
        if at is None:
            continue
        if best is None or at < best[1]:
            best = (slot, at)
    return best


class ScheduleResolver:
    """Resolver bound to a schedule repository and an overlap policy."""

    def __init__(
        self,
        schedules: ScheduleRepo,
        *,
        policy: OverlapPolicy | str = OverlapPolicy.PRIORITY,
    ) -> None:
        self._schedules = schedules
        self.policy = OverlapPolicy(policy)

    def active_slots(self) -> list[Slot]:
        """Slots of active schedules, schedules then slots in creation order."""
        out: list[Slot] = []
        for schedule in self._schedules.list_active_schedules():
            out.extend(self._schedules.list_slots(schedule.id))
        return out

    def current_slot(self, now: datetime | None = None) -> Slot | None:
        now = now or datetime.now()
        return current_slot(self.active_slots(), now, self.policy)

    def next_slot(self, now: datetime | None = None) -> Slot | None:
        found = self.next_slot_with_start(now)
        return found[0] if found else None

    def next_slot_with_start(self, now: datetime | None = None) -> tuple[Slot, datetime] | None:
        now = now or datetime.now()
        return next_slot(self.active_slots(), now)

    def weekly_view(self) -> list[Slot]:
        return sorted(
            self.active_slots(),
            key=lambda s: (min(s.days_of_week, default=7), s.start_time),
        )
