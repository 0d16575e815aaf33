# src/tasko/schedules/occurrences.py

"""
Occurrence generator.

Expands a recurring slot over a date range into concrete pending tasks.

Cadence filter (biweekly / monthly) needs a reference week:
- CadenceAnchor.CREATED: whole weeks since the week the slot was created, so
  the "on" weeks stay fixed no matter when generation runs
- CadenceAnchor.NOW: floor((occurrence - now) / 7 days); the phase moves with
  the wall clock, kept for compatibility with older data
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from enum import StrEnum

from ..core.ports import ScheduleRepo, TaskRepo
from ..tasks.task_models import SCHEDULED_CATEGORY, Task
from ..timeutil import WEEK, clock_to_time, day_of_week, daterange, from_iso, to_iso, week_start
from .schedule_models import Cadence, Slot

logger = logging.getLogger(__name__)


class CadenceAnchor(StrEnum):
    CREATED = "created"
    NOW = "now"


def week_diff(occurrence: datetime, slot: Slot, anchor: CadenceAnchor, now: datetime) -> int:
    if anchor == CadenceAnchor.NOW:
        return math.floor((occurrence - now) / WEEK)

    try:
        ref = from_iso(slot.created_at).date()
    except ValueError:
        logger.warning("Slot %s has unparsable created_at=%r; anchoring to now", slot.id, slot.created_at)
        ref = now.date()
    return (week_start(occurrence.date()) - week_start(ref)).days // 7


def cadence_accepts(cadence: Cadence | None, diff: int) -> bool:
    if cadence == Cadence.BIWEEKLY:
        return diff % 2 == 0
    if cadence == Cadence.MONTHLY:
        return diff % 4 == 0
    # weekly or no cadence
    return True


def occurrence_times(
    slot: Slot,
    start_date: date,
    end_date: date,
    *,
    anchor: CadenceAnchor = CadenceAnchor.CREATED,
    now: datetime | None = None,
) -> list[datetime]:
    """Occurrence datetimes of the slot in [start_date, end_date], day-ascending."""
    now = now or datetime.now()
    start = clock_to_time(slot.start_time)
    out: list[datetime] = []
    for day in daterange(start_date, end_date):
        if day_of_week(day) not in slot.days_of_week:
            continue
        occurrence = datetime.combine(day, start)
        if cadence_accepts(slot.cadence, week_diff(occurrence, slot, anchor, now)):
            out.append(occurrence)
    return out


class OccurrenceGenerator:
    """Materializes recurring slots as Task rows."""

    def __init__(
        self,
        tasks: TaskRepo,
        schedules: ScheduleRepo,
        *,
        anchor: CadenceAnchor | str = CadenceAnchor.CREATED,
        dedupe: bool = True,
    ) -> None:
        self._tasks = tasks
        self._schedules = schedules
        self.anchor = CadenceAnchor(anchor)
        self.dedupe = dedupe

    def generate(
        self,
        slot: Slot,
        start_date: date,
        end_date: date,
        *,
        now: datetime | None = None,
    ) -> list[Task]:
        """
        Create one pending task per accepted occurrence.

        Returns only the tasks created by this call; with dedupe on, occurrences
        generated earlier for the same (slot, due) are skipped.
        """
        created: list[Task] = []
        for occurrence in occurrence_times(slot, start_date, end_date, anchor=self.anchor, now=now):
            task = self._tasks.add_occurrence(
                slot_id=slot.id,
                title=slot.name,
                description=slot.description,
                due_at=to_iso(occurrence),
                reminder_time=slot.start_time,
                priority=slot.priority,
                category=SCHEDULED_CATEGORY,
                dedupe=self.dedupe,
            )
            if task is not None:
                created.append(task)

        if created:
            logger.info(
                "Generated %d occurrence(s) for slot %s (%s) %s..%s",
                len(created),
                slot.id,
                slot.name,
                start_date,
                end_date,
            )
        return created

    def generate_for_schedule(
        self,
        schedule_id: str,
        start_date: date,
        end_date: date,
        *,
        now: datetime | None = None,
    ) -> list[Task]:
        """Expand every recurring slot of an active schedule; [] otherwise."""
        schedule = self._schedules.get_schedule(schedule_id)
        if schedule is None or not schedule.is_active:
            return []

        out: list[Task] = []
        for slot in self._schedules.list_slots(schedule_id):
            if slot.is_recurring:
                out.extend(self.generate(slot, start_date, end_date, now=now))
        return out
