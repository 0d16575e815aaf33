# src/tasko/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Components take settings as an argument; get_settings() is only used at the composition root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKO"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv() -> None:
    """Load .env from the working directory; real env vars win."""
    load_dotenv(override=False)


_load_dotenv()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    debug: bool

    # ---- HTTP ----
    host: str
    port: int
    frontend_url: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Notification scanner ----
    scanner_enabled: bool
    scan_interval_seconds: float
    due_soon_minutes: int
    generation_hour: int
    generation_horizon_days: int

    # ---- Scheduling policies ----
    overlap_policy: str
    cadence_anchor: str
    dedupe_occurrences: bool

    # ---- LLM (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: str
    llm_models: List[str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasko") or "tasko"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        debug = _env_bool(_k("DEBUG"), False)

        host = _env(_k("HOST"), "127.0.0.1")
        port = _env_int(_k("PORT"), _env_int("PORT", 3001))
        frontend_url = _first_env(_k("FRONTEND_URL"), "FRONTEND_URL", default="http://localhost:3000")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasko"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "tasko.sqlite3")

        scanner_enabled = _env_bool(_k("SCANNER_ENABLED"), True)
        scan_interval_seconds = _env_float(_k("SCAN_INTERVAL_SECONDS"), 60.0)
        due_soon_minutes = _env_int(_k("DUE_SOON_MINUTES"), 60)
        generation_hour = min(23, max(0, _env_int(_k("GENERATION_HOUR"), 6)))
        generation_horizon_days = max(0, _env_int(_k("GENERATION_HORIZON_DAYS"), 7))

        overlap_policy = _env_choice(_k("OVERLAP_POLICY"), "priority", {"priority", "first"})
        cadence_anchor = _env_choice(_k("CADENCE_ANCHOR"), "created", {"created", "now"})
        dedupe_occurrences = _env_bool(_k("DEDUPE_OCCURRENCES"), True)

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _env(_k("OPENAI_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini"])

        return Settings(
            app_name=app_name,
            log_level=log_level,
            debug=debug,
            host=host,
            port=port,
            frontend_url=frontend_url,
            data_dir=data_dir,
            db_path=db_path,
            scanner_enabled=scanner_enabled,
            scan_interval_seconds=scan_interval_seconds,
            due_soon_minutes=due_soon_minutes,
            generation_hour=generation_hour,
            generation_horizon_days=generation_horizon_days,
            overlap_policy=overlap_policy,
            cadence_anchor=cadence_anchor,
            dedupe_occurrences=dedupe_occurrences,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            llm_models=llm_models,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
