# src/tasko/api/responses.py

"""
Response envelope and request helpers shared by the blueprints.

Every endpoint answers {success, data?, message?, error?, count?}.
"""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from ..core.state import AppState
from ..errors import ValidationError

STATE_KEY = "tasko.state"

_NO_DATA: Any = object()


def get_state() -> AppState:
    return current_app.extensions[STATE_KEY]


def ok(data: Any = _NO_DATA, *, message: str | None = None, count: int | None = None, status: int = 200):
    body: dict[str, Any] = {"success": True}
    if data is not _NO_DATA:
        body["data"] = data
    if count is not None:
        body["count"] = count
    if message:
        body["message"] = message
    return jsonify(body), status


def ok_list(items: list[Any], *, message: str | None = None):
    return ok(items, count=len(items), message=message)


def fail(error: str, status: int, *, message: str | None = None):
    body: dict[str, Any] = {"success": False, "error": error}
    if message:
        body["message"] = message
    return jsonify(body), status


def json_body() -> dict[str, Any]:
    """The request JSON object; an absent body counts as {}."""
    if not request.data:
        return {}
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def optional_text(body: dict[str, Any], key: str) -> str | None:
    raw = body.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be a string")
    return raw.strip() or None
