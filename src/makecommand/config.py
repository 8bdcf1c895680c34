# src/makecommand/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (backend key / Google client id are optional
  until the matching feature is used).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "MAKECOMMAND"

GOOGLE_TASKS_SCOPE = "https://www.googleapis.com/auth/tasks"
GOOGLE_TASKS_BASE_URL = "https://tasks.googleapis.com/tasks/v1"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backend (Supabase-compatible REST + auth) ----
    backend_url: str
    backend_anon_key: str | None

    # ---- Google Tasks (OAuth implicit grant) ----
    google_client_id: str | None
    google_redirect_uri: str
    google_scope: str
    google_tasks_base_url: str
    google_session_persist: bool
    google_session_path: Path

    # ---- HTTP ----
    http_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "MakeCommand").strip() or "MakeCommand"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/makecommand"))

        backend_url = _env(_k("BACKEND_URL"), "").strip().rstrip("/")
        backend_anon_key = _env(_k("BACKEND_ANON_KEY"), "").strip() or None

        google_client_id = _env(_k("GOOGLE_CLIENT_ID"), "").strip() or None
        google_redirect_uri = _env(_k("GOOGLE_REDIRECT_URI"), "http://localhost:8080/tasks").strip()
        google_scope = _env(_k("GOOGLE_SCOPE"), GOOGLE_TASKS_SCOPE).strip() or GOOGLE_TASKS_SCOPE
        google_tasks_base_url = (
            _env(_k("GOOGLE_TASKS_BASE_URL"), GOOGLE_TASKS_BASE_URL).strip().rstrip("/")
            or GOOGLE_TASKS_BASE_URL
        )
        google_session_persist = _env_bool(_k("GOOGLE_SESSION_PERSIST"), False)
        google_session_path = _env_path(_k("GOOGLE_SESSION_PATH"), data_dir / "google_session.json")

        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            backend_url=backend_url,
            backend_anon_key=backend_anon_key,
            google_client_id=google_client_id,
            google_redirect_uri=google_redirect_uri,
            google_scope=google_scope,
            google_tasks_base_url=google_tasks_base_url,
            google_session_persist=google_session_persist,
            google_session_path=google_session_path,
            http_timeout_seconds=http_timeout_seconds,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings.from_env()
