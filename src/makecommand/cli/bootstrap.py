# src/makecommand/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete implementations into AppState (backend, Google OAuth/client, task board).
"""

from __future__ import annotations

import logging

from ..backend.supabase_gateway import SupabaseGateway
from ..config import get_settings
from ..core.ports import NoticeSink, SessionStore
from ..core.state import AppState
from ..google.oauth import OAuthSession
from ..google.session_store import JsonFileSessionStore, MemorySessionStore
from ..google.tasks_client import GoogleTasksClient
from ..tasks.task_board import TaskBoard

logger = logging.getLogger(__name__)


def _session_store(settings) -> SessionStore:
    if settings.google_session_persist:
        logger.info("Google session persisted to %s", settings.google_session_path)
        return JsonFileSessionStore(settings.google_session_path)
    return MemorySessionStore()


def create_initial_state(*, settings=None, notify: NoticeSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    gateway = SupabaseGateway(
        settings.backend_url,
        settings.backend_anon_key or "",
        timeout=settings.http_timeout_seconds,
    )

    oauth: OAuthSession | None = None
    google: GoogleTasksClient | None = None
    if settings.google_client_id:
        oauth = OAuthSession(
            _session_store(settings),
            client_id=settings.google_client_id,
            redirect_uri=settings.google_redirect_uri,
            scope=settings.google_scope,
        )
        google = GoogleTasksClient(
            oauth,
            base_url=settings.google_tasks_base_url,
            timeout=settings.http_timeout_seconds,
        )
    else:
        logger.info("Google Tasks disabled (MAKECOMMAND_GOOGLE_CLIENT_ID not set)")

    board = TaskBoard(gateway, google=google, oauth=oauth, notify=notify)

    return AppState(
        settings=settings,
        gateway=gateway,
        board=board,
        oauth=oauth,
        google=google,
    )


async def close_state(state: AppState) -> None:
    """Best-effort shutdown of HTTP clients (no exceptions should escape)."""
    for client in (state.google, state.gateway):
        aclose = getattr(client, "aclose", None)
        if aclose is None:
            continue
        try:
            await aclose()
        except Exception:
            logger.debug("HTTP client close failed.", exc_info=True)
