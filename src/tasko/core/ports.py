# src/tasko/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the scheduling core and the assistant.

The resolver, generator and scanner depend on Protocols instead of the concrete
SQLite stores. This keeps storage swappable and makes testing easier.
"""

from typing import Any, Iterable, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class ScheduleRepo(Protocol):
    def list_active_schedules(self) -> list[Any]: ...
    def get_schedule(self, schedule_id: str) -> Any | None: ...
    def list_slots(self, schedule_id: str) -> list[Any]: ...


class TaskRepo(Protocol):
    # Scanner API
    def list_overdue(self, *, now: str) -> list[Any]: ...
    def list_due_between(self, *, after: str, until: str) -> list[Any]: ...
    def list_with_reminders(self) -> list[Any]: ...
    def create_notification(
            self,
            *,
            task_id: str | None,
            type: Any,
            message: str,
            dedup_key: str | None = None,
    ) -> Any | None: ...

    # Occurrence generation
    def add_occurrence(
            self,
            *,
            slot_id: str,
            title: str,
            description: str | None,
            due_at: str,
            reminder_time: str | None,
            priority: Any,
            category: str,
            dedupe: bool = True,
    ) -> Any | None: ...
