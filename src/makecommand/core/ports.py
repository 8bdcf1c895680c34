# src/makecommand/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The view-model depends on Protocols instead of concrete implementations.
This keeps the backend / Google client / browser swappable and makes testing easier.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

Row = dict[str, Any]

NoticeSink = Callable[[str], None]
# Transient user-visible notice (console prints it, tests collect it).


@dataclass(frozen=True, slots=True)
class AuthSession:
    user_id: str
    email: str | None
    access_token: str


@dataclass(frozen=True, slots=True)
class TaskList:
    id: str
    title: str


class SessionStore(Protocol):
    """Key-value storage scoped to the application session (browser sessionStorage analogue)."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def clear(self, key: str) -> None: ...


class Navigator(Protocol):
    """
    User-agent side effects of the OAuth redirect flow.

    open(url)    -> leave the app for the authorization page (full redirect)
    replace(url) -> rewrite the current address without adding a history entry
    """

    def open(self, url: str) -> None: ...
    def replace(self, url: str) -> None: ...


class DataGateway(Protocol):
    """User-scoped CRUD + password auth over the hosted backend."""

    async def sign_in(self, email: str, password: str) -> AuthSession: ...
    async def sign_up(self, email: str, password: str) -> AuthSession: ...
    async def sign_out(self) -> None: ...

    async def select(
            self,
            table: str,
            *,
            user_id: str,
            order_by: str | None = None,
            descending: bool = False,
            filters: dict[str, str] | None = None,
    ) -> list[Row]: ...

    async def insert(self, table: str, row: Row) -> list[Row]: ...
    async def update(self, table: str, row_id: str, values: Row, *, user_id: str) -> list[Row]: ...
    async def delete(self, table: str, row_id: str, *, user_id: str) -> None: ...


class ExternalTaskService(Protocol):
    """Remote task lists (Google Tasks) behind an OAuth bearer token."""

    async def list_task_lists(self) -> list[TaskList]: ...
    async def list_tasks(self, list_id: str) -> list[Row]: ...
    async def create_task(self, list_id: str, payload: Row) -> Row: ...
    async def update_task(self, list_id: str, task_id: str, payload: Row) -> Row: ...
    async def delete_task(self, list_id: str, task_id: str) -> None: ...
