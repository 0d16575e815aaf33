# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasko.api.app import create_app
from tasko.cli.bootstrap import create_initial_state
from tasko.core.state import AppState
from tasko.schedules.schedule_store import ScheduleStore
from tasko.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasko-test",
        log_level="DEBUG",
        debug=False,
        host="127.0.0.1",
        port=3001,
        frontend_url="http://localhost:3000",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "tasko.sqlite3",
        # Scanner
        scanner_enabled=False,
        scan_interval_seconds=0.01,
        due_soon_minutes=60,
        generation_hour=6,
        generation_horizon_days=7,
        # Policies
        overlap_policy="priority",
        cadence_anchor="created",
        dedupe_occurrences=True,
        # No key -> offline interpreter
        openai_api_key=None,
        openai_base_url="https://api.openai.com/v1",
        llm_models=["gpt-4o-mini"],
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def schedule_store(settings: SimpleNamespace) -> ScheduleStore:
    return ScheduleStore(settings.db_path)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState built by the real composition root.

    NOTE: stores are real SQLite files under tmp_path because their
    correctness is part of what we want to test.
    """
    return create_initial_state(settings=settings)


@pytest.fixture()
def client(state: AppState):
    app = create_app(state)
    app.testing = True
    return app.test_client()
