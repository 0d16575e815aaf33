# tests/test_notification_scanner.py

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta

import pytest

from tasko.core.state import AppState
from tasko.tasks.notification_scanner import (
    NotificationScanner,
    ScannerRunner,
    resolve_reminder,
    run_notification_scanner,
)
from tasko.tasks.task_models import NotificationType, TaskStatus
from tasko.tasks.task_store import TaskStore

from .fakes import WED

NOW = WED.replace(hour=12)


def _types(report) -> list[NotificationType]:
    return sorted(n.type for n in report.created)


def test_overdue_notified_once_across_sweeps(state: AppState) -> None:
    store = state.task_store
    task = store.add_task(title="Pay rent", due_at="2024-01-09T12:00:00")

    first = state.scanner.sweep(NOW)
    second = state.scanner.sweep(NOW + timedelta(minutes=1))

    assert [n.type for n in first.created] == [NotificationType.OVERDUE]
    assert first.created[0].message == 'Task "Pay rent" is overdue'
    assert second.created == []
    assert len(store.list_notifications_by_task(task.id)) == 1


def test_completed_tasks_are_not_overdue(state: AppState) -> None:
    task = state.task_store.add_task(title="Done", due_at="2024-01-09T12:00:00")
    state.task_store.update_task(task.id, status=TaskStatus.COMPLETED)
    assert state.scanner.sweep(NOW).created == []


def test_moving_due_date_allows_a_new_overdue_alert(state: AppState) -> None:
    task = state.task_store.add_task(title="Slipping", due_at="2024-01-09T12:00:00")
    state.scanner.sweep(NOW)

    state.task_store.update_task(task.id, due_at="2024-01-10T11:00:00")
    report = state.scanner.sweep(NOW)
    assert [n.type for n in report.created] == [NotificationType.OVERDUE]


def test_due_soon_window(state: AppState) -> None:
    state.task_store.add_task(title="Call bank", due_at="2024-01-10T12:30:00")
    state.task_store.add_task(title="Later", due_at="2024-01-10T14:00:00")

    report = state.scanner.sweep(NOW)
    assert [n.message for n in report.created] == ['Task "Call bank" is due in less than 1 hour']
    assert state.scanner.sweep(NOW).created == []


def test_reminder_clock_time_relative_to_due_date(state: AppState) -> None:
    state.task_store.add_task(
        title="Dentist", due_at="2024-01-10T18:00:00", reminder_time="17:00"
    )

    assert state.scanner.sweep(WED.replace(hour=16, minute=50)).created == []
    report = state.scanner.sweep(WED.replace(hour=17, minute=5))
    assert _types(report) == sorted([NotificationType.REMINDER, NotificationType.DUE_SOON])
    assert state.scanner.sweep(WED.replace(hour=17, minute=10)).created == []


def test_reminder_full_timestamp_and_skip_when_due(state: AppState) -> None:
    state.task_store.add_task(
        title="Renew passport",
        due_at="2024-01-20T09:00:00",
        reminder_time="2024-01-10T08:00:00",
    )
    state.task_store.add_task(
        title="Already due", due_at="2024-01-10T10:00:00", reminder_time="09:00"
    )

    report = state.scanner.sweep(NOW)
    reminders = [n for n in report.created if n.type == NotificationType.REMINDER]
    assert [n.message for n in reminders] == ['Reminder: "Renew passport"']


def test_resolve_reminder_handles_bad_values(task_store: TaskStore) -> None:
    no_due = task_store.add_task(title="a", reminder_time="09:00")
    garbage = task_store.add_task(title="b", due_at="2024-01-10T10:00:00", reminder_time="soon")
    assert resolve_reminder(no_due) is None
    assert resolve_reminder(garbage) is None


def _one_off_slot(state: AppState, name: str = "Standup") -> None:
    schedule = state.schedule_store.create_schedule(name="Week")
    state.schedule_store.create_slot(
        schedule.id,
        name=name,
        days_of_week=[3],
        start_time="09:00",
        end_time="10:00",
        is_recurring=False,
    )


def test_activity_change_start_and_finish(state: AppState) -> None:
    _one_off_slot(state)
    scanner = state.scanner
    scanner.prime(WED.replace(hour=8))

    started = scanner.sweep(WED.replace(hour=9, minute=30))
    same = scanner.sweep(WED.replace(hour=9, minute=45))
    finished = scanner.sweep(WED.replace(hour=10, minute=30))

    assert [n.message for n in started.created] == ['Now doing "Standup"']
    assert started.created[0].task_id is None
    assert started.created[0].type == NotificationType.ACTIVITY_CHANGE
    assert same.created == []
    assert [n.message for n in finished.created] == ['Finished "Standup"']


def test_prime_suppresses_transition_after_restart(state: AppState) -> None:
    _one_off_slot(state)
    state.scanner.prime(WED.replace(hour=9, minute=30))

    assert state.scanner.last_slot_name == "Standup"
    assert state.scanner.sweep(WED.replace(hour=9, minute=40)).created == []


def test_daily_generation_runs_once_after_hour(state: AppState) -> None:
    schedule = state.schedule_store.create_schedule(name="Week")
    state.schedule_store.create_slot(
        schedule.id,
        name="Gym",
        days_of_week=[1, 3, 5],
        start_time="19:00",
        end_time="20:00",
        is_recurring=True,
    )
    scanner = state.scanner

    assert scanner.sweep(WED.replace(hour=5)).generated == 0
    # Wed 10, Fri 12, Mon 15, Wed 17
    assert scanner.sweep(WED.replace(hour=7)).generated == 4
    assert scanner.sweep(WED.replace(hour=8)).generated == 0
    assert scanner.last_generation_date == WED.date()


class _BrokenOverdueRepo:
    """Delegates to a real TaskStore but fails the overdue query."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def list_overdue(self, *, now: str):
        raise RuntimeError("db on fire")

    def __getattr__(self, name: str):
        return getattr(self._store, name)


def test_failing_check_does_not_stop_others(state: AppState) -> None:
    state.task_store.add_task(title="Soon", due_at="2024-01-10T12:30:00")
    scanner = NotificationScanner(
        _BrokenOverdueRepo(state.task_store),
        state.schedule_store,
        state.resolver,
        state.generator,
    )

    report = scanner.sweep(NOW)
    assert not report.ok
    assert "overdue" in report.errors
    assert [n.type for n in report.created] == [NotificationType.DUE_SOON]

    # next tick still runs
    assert "overdue" in scanner.sweep(NOW).errors


class _CountingScanner:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    def sweep(self, now: datetime | None = None):
        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_scanner_loop_keeps_ticking_after_errors() -> None:
    scanner = _CountingScanner(fail=True)
    runner = asyncio.create_task(run_notification_scanner(scanner, interval_seconds=0.01))

    await asyncio.sleep(0.1)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert scanner.calls >= 2


def test_scanner_runner_start_stop() -> None:
    scanner = _CountingScanner()
    runner = ScannerRunner(scanner, interval_seconds=0.01)

    runner.start()
    deadline = time.monotonic() + 2.0
    while scanner.calls == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    runner.stop()
    runner.join(timeout=2.0)

    assert scanner.calls >= 1
    assert not runner.is_alive()
