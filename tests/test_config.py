# tests/test_config.py

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from tasko.config import Settings
from tasko.logging_setup import setup_logging


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in list(os.environ):
        if name.startswith("TASKO_") or name in {"OPENAI_API_KEY", "PORT", "FRONTEND_URL"}:
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    s = Settings.from_env()

    assert s.port == 3001
    assert s.frontend_url == "http://localhost:3000"
    assert s.db_path == Path(".local/tasko") / "tasko.sqlite3"
    assert s.scan_interval_seconds == 60.0
    assert s.overlap_policy == "priority"
    assert s.cadence_anchor == "created"
    assert s.dedupe_occurrences is True
    assert s.openai_api_key is None
    assert s.llm_models == ["gpt-4o-mini"]


def test_env_overrides_and_fallbacks(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("OPENAI_API_KEY", "sk-test")
    clean_env.setenv("TASKO_DATA_DIR", str(tmp_path))
    clean_env.setenv("TASKO_OVERLAP_POLICY", "FIRST")
    clean_env.setenv("TASKO_CADENCE_ANCHOR", "sometimes")
    clean_env.setenv("TASKO_DEDUPE_OCCURRENCES", "off")
    clean_env.setenv("TASKO_LLM_MODELS", "a, b c")
    clean_env.setenv("TASKO_GENERATION_HOUR", "99")

    s = Settings.from_env()

    assert s.port == 8080
    assert s.openai_api_key == "sk-test"
    assert s.db_path == tmp_path / "tasko.sqlite3"
    assert s.overlap_policy == "first"
    assert s.cadence_anchor == "created"  # unknown value -> default
    assert s.dedupe_occurrences is False
    assert s.llm_models == ["a", "b", "c"]
    assert s.generation_hour == 23


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        setup_logging(log_dir=tmp_path, console_level=logging.WARNING)
        logging.getLogger("tasko.test").debug("hello file")
        for h in root.handlers:
            h.flush()
        assert "hello file" in (tmp_path / "tasko.log").read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved:
            root.addHandler(h)
