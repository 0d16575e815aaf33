# src/tasko/api/assistant.py

from __future__ import annotations

from flask import Blueprint

from ..assistant.commands import execute_command
from ..errors import ValidationError
from .responses import get_state, json_body, ok

bp = Blueprint("assistant", __name__)


@bp.post("/process")
def process_command():
    command = json_body().get("command")
    if not isinstance(command, str) or not command.strip():
        raise ValidationError("command is required and must be a string")

    state = get_state()
    result = state.interpreter.interpret(command)
    result, payload = execute_command(state.task_store, result)
    return ok({"response": result.to_dict(), "result": payload}, message=result.message)


@bp.post("/extract-task")
def extract_task():
    text = json_body().get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("text is required and must be a string")
    return ok(get_state().interpreter.extract_task_data(text))
