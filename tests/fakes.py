# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from tasko.core.ports import ChatMessage
from tasko.schedules.schedule_models import Cadence, Slot
from tasko.tasks.task_models import Priority


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    - Raises `error` instead, when set
    """

    def __init__(self, next_text: str = "ok", *, error: Exception | None = None) -> None:
        self.next_text = next_text
        self.error = error
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        if self.error is not None:
            raise self.error
        yield self.next_text


def make_slot(
    *,
    id: str = "slot-1",
    name: str = "Deep work",
    days: tuple[int, ...] = (1, 3, 5),
    start: str = "09:00",
    end: str = "10:00",
    priority: Priority = Priority.MEDIUM,
    cadence: Cadence | None = Cadence.WEEKLY,
    created_at: str = "2024-01-03T12:00:00",
    schedule_id: str = "sched-1",
) -> Slot:
    """Slot value built in memory (no store), with a controllable created_at."""
    return Slot(
        id=id,
        schedule_id=schedule_id,
        name=name,
        description=None,
        days_of_week=days,
        start_time=start,
        end_time=end,
        priority=priority,
        color=None,
        is_recurring=cadence is not None,
        cadence=cadence,
        created_at=created_at,
        updated_at=created_at,
    )


# Sunday 2024-01-07 starts the reference week used across tests.
SUN = datetime(2024, 1, 7)
MON = datetime(2024, 1, 8)
WED = datetime(2024, 1, 10)
