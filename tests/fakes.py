# tests/fakes.py

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any

from makecommand.core.ports import AuthSession, Row, TaskList
from makecommand.errors import Unauthenticated, UpstreamRejected
from makecommand.google.oauth import OAuthSession


class FakeGateway:
    """
    In-memory DataGateway.

    - rows live in per-table lists, ids are "1", "2", ...
    - every call is recorded in `calls` for assertions
    - user_id scoping mirrors row-level security (other users' rows are invisible)
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.fail_with: Exception | None = None
        self._ids = itertools.count(1)
        self.users: dict[str, str] = {}

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            err, self.fail_with = self.fail_with, None
            raise err

    def seed(self, table: str, **row: Any) -> Row:
        row.setdefault("id", str(next(self._ids)))
        self.tables.setdefault(table, []).append(row)
        return row

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self.calls.append(("sign_in", "auth", {"email": email}))
        self._maybe_fail()
        if self.users.get(email) != password:
            raise UpstreamRejected("sign in", 400, "Invalid login credentials")
        return AuthSession(user_id=f"user-{email}", email=email, access_token="jwt")

    async def sign_up(self, email: str, password: str) -> AuthSession:
        self.calls.append(("sign_up", "auth", {"email": email}))
        self._maybe_fail()
        self.users[email] = password
        return AuthSession(user_id=f"user-{email}", email=email, access_token="jwt")

    async def sign_out(self) -> None:
        self.calls.append(("sign_out", "auth", {}))

    async def select(
        self,
        table: str,
        *,
        user_id: str,
        order_by: str | None = None,
        descending: bool = False,
        filters: dict[str, str] | None = None,
    ) -> list[Row]:
        self.calls.append(("select", table, {"user_id": user_id, "order_by": order_by}))
        self._maybe_fail()
        rows = [dict(r) for r in self.tables.get(table, []) if r.get("user_id") == user_id]
        for col, value in (filters or {}).items():
            rows = [r for r in rows if str(r.get(col)) == value]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=descending)
        return rows

    async def insert(self, table: str, row: Row) -> list[Row]:
        self.calls.append(("insert", table, dict(row)))
        self._maybe_fail()
        stored = self.seed(table, **row)
        return [dict(stored)]

    async def update(self, table: str, row_id: str, values: Row, *, user_id: str) -> list[Row]:
        self.calls.append(("update", table, {"id": row_id, "user_id": user_id, **values}))
        self._maybe_fail()
        out = []
        for r in self.tables.get(table, []):
            if r["id"] == row_id and r.get("user_id") == user_id:
                r.update(values)
                out.append(dict(r))
        return out

    async def delete(self, table: str, row_id: str, *, user_id: str) -> None:
        self.calls.append(("delete", table, {"id": row_id, "user_id": user_id}))
        self._maybe_fail()
        self.tables[table] = [
            r for r in self.tables.get(table, [])
            if not (r["id"] == row_id and r.get("user_id") == user_id)
        ]


@dataclass(slots=True)
class FakeGoogleTasks:
    """
    In-memory ExternalTaskService bound to an OAuthSession.

    `reject_token=True` simulates a 401: the session is invalidated and
    Unauthenticated raised, like GoogleTasksClient does.
    """

    session: OAuthSession
    lists: list[TaskList] = field(default_factory=list)
    items: dict[str, list[Row]] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    reject_token: bool = False
    delays: dict[str, float] = field(default_factory=dict)
    _seq: itertools.count = field(default_factory=lambda: itertools.count(1))

    def _auth(self, op: str, *args: Any) -> None:
        self.session.access_token()
        self.calls.append((op, args))
        if self.reject_token:
            self.session.invalidate(f"401 on {op}")
            raise Unauthenticated("Google Tasks rejected the access token.", service="google")

    async def list_task_lists(self) -> list[TaskList]:
        self._auth("list_task_lists")
        return list(self.lists)

    async def list_tasks(self, list_id: str) -> list[Row]:
        self._auth("list_tasks", list_id)
        delay = self.delays.get(list_id)
        if delay:
            await asyncio.sleep(delay)
        return [dict(i) for i in self.items.get(list_id, [])]

    async def create_task(self, list_id: str, payload: Row) -> Row:
        self._auth("create_task", list_id, dict(payload))
        item = {"id": f"g{next(self._seq)}", "updated": "2024-01-01T00:00:00.000Z", **payload}
        self.items.setdefault(list_id, []).append(item)
        return item

    async def update_task(self, list_id: str, task_id: str, payload: Row) -> Row:
        self._auth("update_task", list_id, task_id, dict(payload))
        for item in self.items.get(list_id, []):
            if item["id"] == task_id:
                item.update(payload)
                return item
        raise UpstreamRejected("update task", 404, "Not Found")

    async def delete_task(self, list_id: str, task_id: str) -> None:
        self._auth("delete_task", list_id, task_id)
        self.items[list_id] = [i for i in self.items.get(list_id, []) if i["id"] != task_id]


class FakeNavigator:
    def __init__(self) -> None:
        self.opened: list[str] = []
        self.replaced: list[str] = []

    def open(self, url: str) -> None:
        self.opened.append(url)

    def replace(self, url: str) -> None:
        self.replaced.append(url)
