# src/tasko/tasks/notification_scanner.py

from __future__ import annotations

"""
Notification scanner.

One periodic sweep replaces the separate overdue / due-soon / activity /
daily-generation timers. Every tick:
- overdue tasks          -> one "overdue" notification per task and due date
- tasks due within window -> one "due_soon" notification per task and due date
- reminders that came up  -> one "reminder" notification per task and moment
- current slot changed    -> "activity_change" notification
- once per day after generation_hour -> generate upcoming occurrences

Suppression happens in the store (unique dedup key), so overlapping ticks or a
second scanner process cannot create the same alert twice.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..core.ports import ScheduleRepo, TaskRepo
from ..errors import ValidationError
from ..schedules.occurrences import OccurrenceGenerator
from ..schedules.resolver import ScheduleResolver
from ..timeutil import clock_to_time, from_iso, parse_clock, to_iso
from .task_models import Notification, NotificationType, Task

logger = logging.getLogger(__name__)


def _window_label(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


def resolve_reminder(task: Task) -> datetime | None:
    """
    The moment a task's reminder fires.

    reminder_time is either a full timestamp or an HH:MM clock time on the
    task's due date (generated occurrences use the slot start time).
    """
    raw = (task.reminder_time or "").strip()
    if not raw:
        return None
    try:
        return from_iso(raw)
    except ValueError:
        pass

    if not task.due_at:
        return None
    try:
        clock = parse_clock(raw)
        due = from_iso(task.due_at)
    except (ValidationError, ValueError):
        logger.debug("Task %s has unusable reminder_time=%r", task.id, raw)
        return None
    return datetime.combine(due.date(), clock_to_time(clock))


@dataclass(slots=True)
class SweepReport:
    created: list[Notification] = field(default_factory=list)
    generated: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class NotificationScanner:
    """
    Owns the scanner state: the last-seen active slot and the last daily
    generation date. Call prime() once at startup.
    """

    def __init__(
        self,
        tasks: TaskRepo,
        schedules: ScheduleRepo,
        resolver: ScheduleResolver,
        generator: OccurrenceGenerator,
        *,
        due_soon_minutes: int = 60,
        generation_hour: int = 6,
        generation_horizon_days: int = 7,
    ) -> None:
        self._tasks = tasks
        self._schedules = schedules
        self._resolver = resolver
        self._generator = generator
        self.due_soon_window = timedelta(minutes=max(1, int(due_soon_minutes)))
        self.generation_hour = int(generation_hour)
        self.generation_horizon_days = int(generation_horizon_days)

        self.last_slot_id: str | None = None
        self.last_slot_name: str | None = None
        self.last_generation_date: date | None = None

        # serializes sweep() when a second caller drives the scanner
        self._lock = threading.Lock()

    def prime(self, now: datetime | None = None) -> None:
        """Re-derive the last-seen slot so a restart does not report a transition."""
        now = now or datetime.now()
        try:
            slot = self._resolver.current_slot(now)
        except Exception:
            logger.exception("prime: current_slot failed")
            return
        self.last_slot_id = slot.id if slot else None
        self.last_slot_name = slot.name if slot else None
        logger.info("Scanner primed (current slot=%s)", self.last_slot_name)

    # ---- conditions ----

    def check_overdue(self, now: datetime) -> list[Notification]:
        out: list[Notification] = []
        for task in self._tasks.list_overdue(now=to_iso(now)):
            n = self._tasks.create_notification(
                task_id=task.id,
                type=NotificationType.OVERDUE,
                message=f'Task "{task.title}" is overdue',
                dedup_key=f"overdue:{task.id}:{task.due_at}",
            )
            if n is not None:
                logger.info("Overdue notification for task %s (%s)", task.id, task.title)
                out.append(n)
        return out

    def check_due_soon(self, now: datetime) -> list[Notification]:
        out: list[Notification] = []
        label = _window_label(int(self.due_soon_window.total_seconds() // 60))
        tasks = self._tasks.list_due_between(
            after=to_iso(now), until=to_iso(now + self.due_soon_window)
        )
        for task in tasks:
            n = self._tasks.create_notification(
                task_id=task.id,
                type=NotificationType.DUE_SOON,
                message=f'Task "{task.title}" is due in less than {label}',
                dedup_key=f"due_soon:{task.id}:{task.due_at}",
            )
            if n is not None:
                logger.info("Due-soon notification for task %s (%s)", task.id, task.title)
                out.append(n)
        return out

    def check_reminders(self, now: datetime) -> list[Notification]:
        out: list[Notification] = []
        for task in self._tasks.list_with_reminders():
            at = resolve_reminder(task)
            if at is None or at > now:
                continue
            # once the task is overdue the overdue alert takes over
            if task.due_at and from_iso(task.due_at) <= now:
                continue
            n = self._tasks.create_notification(
                task_id=task.id,
                type=NotificationType.REMINDER,
                message=f'Reminder: "{task.title}"',
                dedup_key=f"reminder:{task.id}:{to_iso(at)}",
            )
            if n is not None:
                logger.info("Reminder notification for task %s (%s)", task.id, task.title)
                out.append(n)
        return out

    def check_activity_change(self, now: datetime) -> list[Notification]:
        slot = self._resolver.current_slot(now)
        new_id = slot.id if slot else None
        if new_id == self.last_slot_id:
            return []

        if slot is not None:
            message = f'Now doing "{slot.name}"'
        else:
            message = f'Finished "{self.last_slot_name}"'

        n = self._tasks.create_notification(
            task_id=None,
            type=NotificationType.ACTIVITY_CHANGE,
            message=message,
        )
        logger.info("Activity change: %s -> %s", self.last_slot_name, slot.name if slot else None)

        self.last_slot_id = new_id
        self.last_slot_name = slot.name if slot else None
        return [n] if n is not None else []

    def generate_daily(self, now: datetime) -> int:
        """Generate upcoming occurrences once per day, after generation_hour."""
        today = now.date()
        if self.last_generation_date == today or now.hour < self.generation_hour:
            return 0

        end = today + timedelta(days=self.generation_horizon_days)
        total = 0
        for schedule in self._schedules.list_active_schedules():
            generated = self._generator.generate_for_schedule(schedule.id, today, end, now=now)
            if generated:
                logger.info("Generated %d task(s) from schedule %s", len(generated), schedule.name)
            total += len(generated)

        self.last_generation_date = today
        return total

    # ---- sweep ----

    def sweep(self, now: datetime | None = None) -> SweepReport:
        """
        Run every condition once. A failing condition is logged and recorded
        in the report; the others still run.
        """
        now = now or datetime.now()
        report = SweepReport()

        with self._lock:
            for name, check in (
                ("overdue", self.check_overdue),
                ("due_soon", self.check_due_soon),
                ("reminder", self.check_reminders),
                ("activity_change", self.check_activity_change),
            ):
                try:
                    report.created.extend(check(now))
                except Exception as e:
                    logger.exception("Scanner check %s failed", name)
                    report.errors[name] = str(e) or e.__class__.__name__

            try:
                report.generated = self.generate_daily(now)
            except Exception as e:
                logger.exception("Scanner daily generation failed")
                report.errors["generation"] = str(e) or e.__class__.__name__

        if report.created or report.generated:
            logger.debug(
                "Sweep done: %d notification(s), %d generated task(s)",
                len(report.created),
                report.generated,
            )
        return report


async def run_notification_scanner(
        scanner: NotificationScanner,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling loop: one sweep every interval_seconds.

    A failed sweep is retried on the next tick, not immediately.
    To stop the scanner, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            await asyncio.to_thread(scanner.sweep)
        except Exception:
            logger.exception("Notification sweep failed")

        await asyncio.sleep(sleep_s)


class ScannerRunner:
    """
    Runs run_notification_scanner() on a background thread with its own event
    loop, so the HTTP server can own the main thread.
    """

    def __init__(self, scanner: NotificationScanner, *, interval_seconds: float = 60.0) -> None:
        self._scanner = scanner
        self._interval = interval_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._thread = threading.Thread(target=self._run, name="tasko-scanner", daemon=True)
        self._started = threading.Event()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._task = loop.create_task(
            run_notification_scanner(self._scanner, interval_seconds=self._interval)
        )
        self._started.set()
        try:
            loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            pass
        finally:
            loop.close()
            logger.info("Notification scanner stopped.")

    def start(self) -> None:
        self._thread.start()
        self._started.wait(timeout=5.0)
        logger.info("Notification scanner started (interval=%.1fs).", self._interval)

    def stop(self) -> None:
        loop, task = self._loop, self._task
        if loop is None or task is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(task.cancel)

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()
