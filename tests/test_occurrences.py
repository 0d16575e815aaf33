# tests/test_occurrences.py

from __future__ import annotations

from datetime import date, datetime

from tasko.schedules.occurrences import CadenceAnchor, OccurrenceGenerator, occurrence_times
from tasko.schedules.schedule_models import Cadence
from tasko.schedules.schedule_store import ScheduleStore
from tasko.tasks.task_models import SCHEDULED_CATEGORY, TaskStatus
from tasko.tasks.task_store import TaskStore

from .fakes import make_slot

# Mondays in range: 01-08, 01-15, 01-22, 01-29
RANGE = (date(2024, 1, 7), date(2024, 2, 3))


def _generator(task_store: TaskStore, schedule_store: ScheduleStore, **kw) -> OccurrenceGenerator:
    return OccurrenceGenerator(task_store, schedule_store, **kw)


def test_weekly_mon_wed_fri_over_seven_days(
    task_store: TaskStore, schedule_store: ScheduleStore
) -> None:
    slot = make_slot(days=(1, 3, 5), start="09:00", end="10:00", cadence=Cadence.WEEKLY)
    tasks = _generator(task_store, schedule_store).generate(
        slot, date(2024, 1, 8), date(2024, 1, 14)
    )

    assert [t.due_at for t in tasks] == [
        "2024-01-08T09:00:00",
        "2024-01-10T09:00:00",
        "2024-01-12T09:00:00",
    ]
    first = tasks[0]
    assert first.title == slot.name
    assert first.status == TaskStatus.PENDING
    assert first.category == SCHEDULED_CATEGORY
    assert first.reminder_time == "09:00"
    assert first.slot_id == slot.id


def test_biweekly_and_monthly_anchored_to_creation_week() -> None:
    # created Wednesday 2024-01-03, week starting Sunday 2023-12-31
    created = "2024-01-03T12:00:00"
    biweekly = make_slot(days=(1,), cadence=Cadence.BIWEEKLY, created_at=created)
    monthly = make_slot(days=(1,), cadence=Cadence.MONTHLY, created_at=created)

    assert occurrence_times(biweekly, *RANGE) == [datetime(2024, 1, 15, 9), datetime(2024, 1, 29, 9)]
    assert occurrence_times(monthly, *RANGE) == [datetime(2024, 1, 29, 9)]


def test_creation_anchor_does_not_drift_with_now() -> None:
    slot = make_slot(days=(1,), cadence=Cadence.BIWEEKLY)
    a = occurrence_times(slot, *RANGE, now=datetime(2024, 1, 7, 8))
    b = occurrence_times(slot, *RANGE, now=datetime(2024, 1, 14, 8))
    assert a == b


def test_now_anchor_reproduces_drifting_phase() -> None:
    slot = make_slot(days=(1,), cadence=Cadence.BIWEEKLY)
    first = occurrence_times(slot, *RANGE, anchor=CadenceAnchor.NOW, now=datetime(2024, 1, 7, 8))
    later = occurrence_times(slot, *RANGE, anchor=CadenceAnchor.NOW, now=datetime(2024, 1, 14, 8))

    assert first == [datetime(2024, 1, 8, 9), datetime(2024, 1, 22, 9)]
    assert set(later) < set(occurrence_times(make_slot(days=(1,)), *RANGE))
    assert later != first


def test_cadence_results_are_subsets_of_weekly() -> None:
    weekly = set(occurrence_times(make_slot(days=(1, 4)), *RANGE))
    for cadence in (Cadence.BIWEEKLY, Cadence.MONTHLY):
        subset = set(occurrence_times(make_slot(days=(1, 4), cadence=cadence), *RANGE))
        assert subset < weekly


def test_regeneration_is_idempotent_with_dedupe(
    task_store: TaskStore, schedule_store: ScheduleStore
) -> None:
    gen = _generator(task_store, schedule_store)
    slot = make_slot()

    assert len(gen.generate(slot, date(2024, 1, 8), date(2024, 1, 14))) == 3
    # overlapping range: only the new week is added
    assert len(gen.generate(slot, date(2024, 1, 10), date(2024, 1, 21))) == 3
    assert task_store.count_tasks() == 6


def test_generation_without_dedupe_duplicates_tasks(
    task_store: TaskStore, schedule_store: ScheduleStore
) -> None:
    # Known defect of the legacy behavior, kept behind dedupe=False.
    gen = _generator(task_store, schedule_store, dedupe=False)
    slot = make_slot()

    gen.generate(slot, date(2024, 1, 8), date(2024, 1, 14))
    gen.generate(slot, date(2024, 1, 8), date(2024, 1, 14))

    due = [t.due_at for t in task_store.list_tasks()]
    assert len(due) == 6
    assert due.count("2024-01-08T09:00:00") == 2


def test_generate_for_schedule_skips_inactive_missing_and_one_off(
    task_store: TaskStore, schedule_store: ScheduleStore
) -> None:
    gen = _generator(task_store, schedule_store)
    schedule = schedule_store.create_schedule(name="Week")
    fields = dict(days_of_week=[1, 3, 5], start_time="09:00", end_time="10:00")
    schedule_store.create_slot(schedule.id, name="Recurring", is_recurring=True, **fields)
    schedule_store.create_slot(schedule.id, name="One-off", is_recurring=False, **fields)

    tasks = gen.generate_for_schedule(schedule.id, date(2024, 1, 8), date(2024, 1, 14))
    assert {t.title for t in tasks} == {"Recurring"}
    assert len(tasks) == 3

    assert gen.generate_for_schedule("missing", date(2024, 1, 8), date(2024, 1, 14)) == []

    schedule_store.update_schedule(schedule.id, is_active=False)
    assert gen.generate_for_schedule(schedule.id, date(2024, 1, 15), date(2024, 1, 21)) == []
