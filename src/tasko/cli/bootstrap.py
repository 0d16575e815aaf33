# src/tasko/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores/resolver/generator/
  scanner/LLM).
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..assistant.commands import CommandInterpreter
from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenAILLMClient
from ..llm.offline import OfflineLLMClient
from ..schedules.occurrences import OccurrenceGenerator
from ..schedules.resolver import ScheduleResolver
from ..schedules.schedule_store import ScheduleStore
from ..tasks.notification_scanner import NotificationScanner
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    try:
        llm_client = OpenAILLMClient(settings)
    except Exception as e:
        # Fallback for local runs without an external completion service.
        logger.info("LLM disabled (%s); using offline keyword interpreter.", e)
        llm_client = OfflineLLMClient()

    task_store = TaskStore(settings.db_path)
    schedule_store = ScheduleStore(settings.db_path)
    resolver = ScheduleResolver(schedule_store, policy=settings.overlap_policy)
    generator = OccurrenceGenerator(
        task_store,
        schedule_store,
        anchor=settings.cadence_anchor,
        dedupe=settings.dedupe_occurrences,
    )
    scanner = NotificationScanner(
        task_store,
        schedule_store,
        resolver,
        generator,
        due_soon_minutes=settings.due_soon_minutes,
        generation_hour=settings.generation_hour,
        generation_horizon_days=settings.generation_horizon_days,
    )

    return AppState(
        settings=settings,
        llm=llm_client,
        task_store=task_store,
        schedule_store=schedule_store,
        resolver=resolver,
        generator=generator,
        scanner=scanner,
        interpreter=CommandInterpreter(llm_client),
    )
