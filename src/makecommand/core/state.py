# src/makecommand/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..google.oauth import OAuthSession
from ..records.records_api import RecordsRepo
from ..tasks.task_board import TaskBoard
from .ports import AuthSession, DataGateway, ExternalTaskService


@dataclass
class AppState:
    """
    Shared application state passed to commands and connectors.

    Keep this small and explicit:
    - settings: runtime configuration object
    - gateway: app backend (auth + tables)
    - oauth / google: Google Tasks session and client (None when not configured)
    - board: task view-model
    - auth: signed-in backend session (None when signed out)
    """

    settings: Any
    gateway: DataGateway
    board: TaskBoard
    oauth: OAuthSession | None = None
    google: ExternalTaskService | None = None
    auth: AuthSession | None = None

    def __post_init__(self) -> None:
        self.board.on_signed_out = self.clear_auth

    @property
    def user_id(self) -> str | None:
        return self.auth.user_id if self.auth is not None else None

    def clear_auth(self) -> None:
        """Forget the backend session everywhere (sign-out or a rejected token)."""
        self.auth = None
        self.board.set_user(None)

    def records(self) -> RecordsRepo | None:
        user_id = self.user_id
        if user_id is None:
            return None
        return RecordsRepo(self.gateway, user_id)
