# tests/test_commands.py

from __future__ import annotations

import json

import pytest

from tasko.assistant.commands import (
    CommandAction,
    CommandInterpreter,
    CommandResult,
    execute_command,
    keyword_command,
    parse_llm_reply,
)
from tasko.llm.offline import OfflineLLMClient
from tasko.tasks.task_models import Priority, TaskStatus
from tasko.tasks.task_store import TaskStore

from .fakes import FakeLLMClient


@pytest.mark.parametrize(
    "text, action",
    [
        ("Create a task to review emails", CommandAction.CREATE_TASK),
        ("add buy milk", CommandAction.CREATE_TASK),
        ("crea una tarea para llamar a mamá", CommandAction.CREATE_TASK),
        ("mark 'budget' as done", CommandAction.COMPLETE_TASK),
        ("tarea terminada", CommandAction.COMPLETE_TASK),
        ("help", CommandAction.HELP),
        ("ayuda", CommandAction.HELP),
        ("What tasks do I have pending?", CommandAction.LIST_TASKS),
        ("the weather is nice", CommandAction.UNKNOWN),
    ],
)
def test_keyword_command_actions(text: str, action: CommandAction) -> None:
    assert keyword_command(text).action == action


def test_keyword_create_strips_keyword_from_title() -> None:
    result = keyword_command("Create a task to review emails")
    assert result.data == {"title": "review emails"}
    assert keyword_command("unknown stuff").confidence == 0.0


def test_parse_llm_reply_extracts_first_object_and_clamps() -> None:
    reply = 'Sure! {"action": "create_task", "data": {"title": "Gym"}, "message": "ok", "confidence": 3}'
    result = parse_llm_reply(reply)
    assert result.action == CommandAction.CREATE_TASK
    assert result.data == {"title": "Gym"}
    assert result.confidence == 1.0


def test_parse_llm_reply_maps_unknown_action() -> None:
    assert parse_llm_reply('{"action": "launch_rocket"}').action == CommandAction.UNKNOWN
    with pytest.raises(ValueError):
        parse_llm_reply("no json here")


def test_interpreter_uses_llm_reply() -> None:
    llm = FakeLLMClient(
        json.dumps({"action": "list_tasks", "data": {}, "message": "here", "confidence": 0.9})
    )
    result = CommandInterpreter(llm).interpret("show me everything")

    assert result.action == CommandAction.LIST_TASKS
    assert result.confidence == 0.9
    messages, system_prompt = llm.calls[0]
    assert 'User command: "show me everything"' in messages[0]["content"]
    assert "JSON" in system_prompt


@pytest.mark.parametrize(
    "llm",
    [FakeLLMClient("I am not JSON"), FakeLLMClient(error=RuntimeError("network down"))],
)
def test_interpreter_falls_back_to_keywords(llm: FakeLLMClient) -> None:
    result = CommandInterpreter(llm).interpret("add water the plants")
    assert result.action == CommandAction.CREATE_TASK
    assert result.data["title"] == "water the plants"


def test_offline_client_roundtrips_through_interpreter() -> None:
    result = CommandInterpreter(OfflineLLMClient()).interpret('new "Book flights"')
    assert result.action == CommandAction.CREATE_TASK
    assert result.data == {"title": "Book flights"}


def test_extract_task_data_defaults_to_text() -> None:
    interpreter = CommandInterpreter(FakeLLMClient('{"action": "unknown", "data": {}}'))
    assert interpreter.extract_task_data("  something  ") == {"title": "something"}


def test_execute_create_task(task_store: TaskStore) -> None:
    result = CommandResult(
        action=CommandAction.CREATE_TASK,
        data={"title": "Gym", "priority": "urgent", "dueDate": "2024-01-10 18:00"},
    )
    result, payload = execute_command(task_store, result)

    assert result.message == 'Task "Gym" created'
    assert payload["priority"] == Priority.MEDIUM.value
    assert payload["dueDate"] == "2024-01-10T18:00:00"
    assert task_store.count_tasks() == 1


def test_execute_create_without_title_asks(task_store: TaskStore) -> None:
    _, payload = execute_command(task_store, CommandResult(action=CommandAction.CREATE_TASK))
    assert payload is None
    assert task_store.count_tasks() == 0


def test_execute_list_returns_open_tasks(task_store: TaskStore) -> None:
    task_store.add_task(title="open")
    done = task_store.add_task(title="done")
    task_store.update_task(done.id, status=TaskStatus.COMPLETED)

    result, payload = execute_command(task_store, CommandResult(action=CommandAction.LIST_TASKS))
    assert [t["title"] for t in payload] == ["open"]
    assert result.message == "You have 1 pending task(s)"


def test_execute_complete_by_title(task_store: TaskStore) -> None:
    task = task_store.add_task(title="Review budget")
    result, payload = execute_command(
        task_store,
        CommandResult(action=CommandAction.COMPLETE_TASK, data={"title": "review BUDGET"}),
    )
    assert payload["status"] == "completed"
    assert task_store.get_task(task.id).status == TaskStatus.COMPLETED


def test_execute_complete_without_match_asks(task_store: TaskStore) -> None:
    result, payload = execute_command(
        task_store, CommandResult(action=CommandAction.COMPLETE_TASK, data={})
    )
    assert payload is None
    assert "specify" in result.message


def test_execute_update_by_id(task_store: TaskStore) -> None:
    task = task_store.add_task(title="Pay rent")
    _, payload = execute_command(
        task_store,
        CommandResult(action=CommandAction.UPDATE_TASK, data={"id": task.id, "priority": "high"}),
    )
    assert payload["priority"] == "high"


@pytest.mark.parametrize(
    "text",
    [
        "buy milk\nand eggs",
        'add "Book flights"\nfor the trip',
        "mark \"it's done\" as done",
        'create {"action": "help"} task',
        "what is pending?\n\nAnswer with the JSON only:",
        "crea una tarea para llamar a mamá",
    ],
)
def test_offline_interpreter_matches_keyword_command(text: str) -> None:
    assert CommandInterpreter(OfflineLLMClient()).interpret(text) == keyword_command(text)


def test_offline_multiline_command_does_not_complete_unrelated_task(task_store: TaskStore) -> None:
    task = task_store.add_task(title="Plan transaction review")

    result = CommandInterpreter(OfflineLLMClient()).interpret("buy milk\nand eggs")
    _, payload = execute_command(task_store, result)

    assert result.action == CommandAction.UNKNOWN
    assert payload is None
    assert task_store.get_task(task.id).status == TaskStatus.PENDING
