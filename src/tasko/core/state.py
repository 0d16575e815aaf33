# src/tasko/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..assistant.commands import CommandInterpreter
from ..schedules.occurrences import OccurrenceGenerator
from ..schedules.resolver import ScheduleResolver
from ..schedules.schedule_store import ScheduleStore
from ..tasks.notification_scanner import NotificationScanner
from ..tasks.task_store import TaskStore
from .ports import LLMClient


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    llm: LLMClient
    task_store: TaskStore
    schedule_store: ScheduleStore
    resolver: ScheduleResolver
    generator: OccurrenceGenerator
    scanner: NotificationScanner
    interpreter: CommandInterpreter
