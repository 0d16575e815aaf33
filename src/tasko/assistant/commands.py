# src/tasko/assistant/commands.py

"""
Natural-language command interpreter.

Maps free text onto one of a fixed set of actions. The LLM (when configured)
is asked for a JSON object; anything unusable falls back to a keyword
heuristic, so the feature works offline and never raises on bad model output.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.ports import LLMClient
from ..errors import TaskoError
from ..tasks.task_models import Priority, Task, TaskStatus
from ..tasks.task_store import TaskStore
from ..timeutil import parse_datetime, to_iso

logger = logging.getLogger(__name__)


class CommandAction(StrEnum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    LIST_TASKS = "list_tasks"
    COMPLETE_TASK = "complete_task"
    HELP = "help"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Any) -> CommandAction:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(slots=True)
class CommandResult:
    action: CommandAction
    data: dict[str, Any] = field(default_factory=dict)
    message: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "data": self.data,
            "message": self.message,
            "confidence": self.confidence,
        }


SYSTEM_PROMPT = "You are a task management assistant. Always answer with valid JSON only."

_PROMPT_TEMPLATE = """Analyze the user's command and answer with a JSON object of this shape:

{{
  "action": "create_task|update_task|list_tasks|complete_task|help|unknown",
  "data": {{
    "title": "task title",
    "description": "optional description",
    "dueDate": "YYYY-MM-DD HH:mm",
    "priority": "low|medium|high",
    "status": "pending|in_progress|completed",
    "category": "optional category"
  }},
  "message": "short friendly reply to the user",
  "confidence": 0.0
}}

User command: {command}

Answer with the JSON only:"""

HELP_TEXT = (
    "Hi! I'm your task assistant. You can say things like:\n"
    '- "Create a task to review emails tomorrow at 2pm"\n'
    '- "Add a team meeting on Friday"\n'
    '- "What tasks do I have pending?"\n'
    '- "Mark \'review budget\' as done"'
)

UNKNOWN_TEXT = 'I could not understand your command. Try saying "help" to see examples.'

# English first, then the Spanish keywords older clients send.
_CREATE_WORDS = ("create", "new", "add", "crea", "nueva", "agregar")
_COMPLETE_WORDS = ("done", "complete", "completed", "finished", "completada", "terminada", "hecho")
_HELP_WORDS = ("help", "ayuda")
_LIST_WORDS = ("list", "pending", "show", "what", "pendientes")

_LEADING_FILLER = {"a", "an", "the", "task", "to", "for", "una", "tarea", "para"}


def _has_word(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


def _quoted(text: str) -> str | None:
    m = re.search(r"\"([^\"]+)\"|'([^']+)'", text)
    if not m:
        return None
    return (m.group(1) or m.group(2)).strip() or None


def _strip_create_words(text: str) -> str:
    pattern = r"\b(" + "|".join(re.escape(w) for w in _CREATE_WORDS) + r")\b"
    words = re.sub(pattern, " ", text, flags=re.IGNORECASE).split()
    while words and words[0].lower() in _LEADING_FILLER:
        words.pop(0)
    return " ".join(words)


def keyword_command(text: str) -> CommandResult:
    """Offline heuristic used when no LLM answer is available."""
    lowered = (text or "").lower()

    if _has_word(lowered, _CREATE_WORDS):
        title = _quoted(text) or _strip_create_words(text)
        return CommandResult(
            action=CommandAction.CREATE_TASK,
            data={"title": title} if title else {},
            message="Looks like you want to create a task.",
            confidence=0.7,
        )

    if _has_word(lowered, _COMPLETE_WORDS):
        title = _quoted(text)
        return CommandResult(
            action=CommandAction.COMPLETE_TASK,
            data={"title": title} if title else {},
            message="Looks like you want to mark a task as completed.",
            confidence=0.6,
        )

    if _has_word(lowered, _HELP_WORDS):
        return CommandResult(action=CommandAction.HELP, message=HELP_TEXT, confidence=1.0)

    if _has_word(lowered, _LIST_WORDS):
        return CommandResult(
            action=CommandAction.LIST_TASKS,
            message="Here are your pending tasks.",
            confidence=0.6,
        )

    return CommandResult(action=CommandAction.UNKNOWN, message=UNKNOWN_TEXT, confidence=0.0)


def parse_llm_reply(raw: str) -> CommandResult:
    """
    Extract the first {...} block from a model reply.

    Raises ValueError when there is no JSON object in the reply.
    """
    m = re.search(r"\{[\s\S]*\}", raw or "")
    if not m:
        raise ValueError("No JSON object in LLM reply")

    parsed = json.loads(m.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("LLM reply JSON is not an object")

    data = parsed.get("data")
    try:
        confidence = float(parsed.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5

    return CommandResult(
        action=CommandAction.from_raw(parsed.get("action", "unknown")),
        data=data if isinstance(data, dict) else {},
        message=str(parsed.get("message") or "I could not process your command"),
        confidence=max(0.0, min(1.0, confidence)),
    )


class CommandInterpreter:
    def __init__(self, llm: LLMClient | None = None) -> None:
        self._llm = llm

    def interpret(self, text: str) -> CommandResult:
        if self._llm is None:
            return keyword_command(text)

        prompt = _PROMPT_TEMPLATE.format(command=json.dumps(text, ensure_ascii=False))
        try:
            reply = "".join(
                self._llm.stream_chat([{"role": "user", "content": prompt}], SYSTEM_PROMPT)
            )
            return parse_llm_reply(reply)
        except Exception:
            logger.warning("LLM command interpretation failed; using keyword fallback", exc_info=True)
            return keyword_command(text)

    def extract_task_data(self, text: str) -> dict[str, Any]:
        result = self.interpret(text)
        return result.data or {"title": text.strip()}


# ---- execution ----


def _optional_due(raw: Any) -> str | None:
    if not raw:
        return None
    try:
        return to_iso(parse_datetime(raw, field="dueDate"))
    except TaskoError:
        logger.info("Ignoring unparsable due date from assistant: %r", raw)
        return None


def _find_task(store: TaskStore, data: dict[str, Any]) -> Task | None:
    task_id = data.get("id")
    if isinstance(task_id, str) and task_id:
        task = store.get_task(task_id)
        if task is not None:
            return task

    title = str(data.get("title") or "").strip().lower()
    if not title:
        return None

    open_tasks = [t for t in store.list_tasks() if t.status != TaskStatus.COMPLETED]
    exact = [t for t in open_tasks if t.title.lower() == title]
    if exact:
        return exact[0]
    partial = [t for t in open_tasks if title in t.title.lower()]
    return partial[0] if len(partial) == 1 else None


def execute_command(store: TaskStore, result: CommandResult) -> tuple[CommandResult, Any]:
    """
    Carry out an interpreted command against the task store.

    Returns the (possibly re-worded) result and the payload for the client.
    """
    data = result.data or {}

    if result.action == CommandAction.CREATE_TASK:
        title = str(data.get("title") or "").strip()
        if not title:
            result.message = "What should the task be called?"
            return result, None
        try:
            priority = Priority(data.get("priority") or "medium")
        except ValueError:
            priority = Priority.MEDIUM
        try:
            status = TaskStatus(data.get("status") or "pending")
        except ValueError:
            status = TaskStatus.PENDING
        task = store.add_task(
            title=title,
            description=data.get("description") or None,
            due_at=_optional_due(data.get("dueDate")),
            priority=priority,
            status=status,
            category=data.get("category") or None,
        )
        result.message = f'Task "{task.title}" created'
        return result, task.to_dict()

    if result.action == CommandAction.LIST_TASKS:
        pending = [t for t in store.list_tasks() if t.status != TaskStatus.COMPLETED]
        result.message = f"You have {len(pending)} pending task(s)"
        return result, [t.to_dict() for t in pending]

    if result.action == CommandAction.COMPLETE_TASK:
        task = _find_task(store, data)
        if task is None:
            result.message = "Please specify which task you want to mark as completed"
            return result, None
        updated = store.update_task(task.id, status=TaskStatus.COMPLETED)
        result.message = f'Task "{task.title}" marked as completed'
        return result, updated.to_dict() if updated else None

    if result.action == CommandAction.UPDATE_TASK:
        task = _find_task(store, data)
        if task is None:
            result.message = "Please specify which task you want to update"
            return result, None
        changes: dict[str, Any] = {}
        if data.get("priority") in {p.value for p in Priority}:
            changes["priority"] = Priority(data["priority"])
        if data.get("status") in {s.value for s in TaskStatus}:
            changes["status"] = TaskStatus(data["status"])
        if data.get("dueDate"):
            due = _optional_due(data["dueDate"])
            if due:
                changes["due_at"] = due
        if data.get("description"):
            changes["description"] = str(data["description"])
        if data.get("category"):
            changes["category"] = str(data["category"])
        if not changes:
            result.message = f'Nothing to change on "{task.title}"'
            return result, task.to_dict()
        updated = store.update_task(task.id, **changes)
        result.message = f'Task "{task.title}" updated'
        return result, updated.to_dict() if updated else None

    if result.action == CommandAction.HELP:
        result.message = HELP_TEXT
        return result, None

    result.message = UNKNOWN_TEXT
    return result, None
