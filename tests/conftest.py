# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from makecommand.core.ports import AuthSession, TaskList
from makecommand.core.state import AppState
from makecommand.google.oauth import OAUTH_STATE, OAuthSession
from makecommand.google.session_store import MemorySessionStore
from makecommand.tasks.task_board import TaskBoard

from .fakes import FakeGateway, FakeGoogleTasks, FakeNavigator

USER_ID = "user-1"
FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

CALLBACK_URL = (
    "http://localhost:8080/tasks#access_token=ya29.token"
    f"&token_type=Bearer&expires_in=3599&state={OAUTH_STATE}"
)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="MakeCommand",
        log_level="INFO",
        data_dir=tmp_path,
        backend_url="https://backend.test",
        backend_anon_key="anon",
        google_client_id="client-123",
        google_redirect_uri="http://localhost:8080/tasks",
        google_scope="https://www.googleapis.com/auth/tasks",
        google_tasks_base_url="https://tasks.test/tasks/v1",
        google_session_persist=False,
        google_session_path=tmp_path / "google_session.json",
        http_timeout_seconds=5.0,
    )


@pytest.fixture()
def navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest.fixture()
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture()
def oauth(session_store: MemorySessionStore, navigator: FakeNavigator) -> OAuthSession:
    return OAuthSession(
        session_store,
        client_id="client-123",
        redirect_uri="http://localhost:8080/tasks",
        scope="https://www.googleapis.com/auth/tasks",
        navigator=navigator,
    )


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def google(oauth: OAuthSession) -> FakeGoogleTasks:
    return FakeGoogleTasks(
        session=oauth,
        lists=[TaskList(id="work", title="Work"), TaskList(id="main", title="My Tasks")],
    )


@pytest.fixture()
def board(gateway: FakeGateway, google: FakeGoogleTasks, oauth: OAuthSession) -> TaskBoard:
    return TaskBoard(
        gateway,
        google=google,
        oauth=oauth,
        user_id=USER_ID,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, gateway: FakeGateway, board: TaskBoard, oauth, google) -> AppState:
    """AppState wired with in-memory fakes and a signed-in user."""
    return AppState(
        settings=settings,
        gateway=gateway,
        board=board,
        oauth=oauth,
        google=google,
        auth=AuthSession(user_id=USER_ID, email="me@example.com", access_token="jwt"),
    )
