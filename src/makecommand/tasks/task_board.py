# src/makecommand/tasks/task_board.py

"""
Task aggregation view-model.

Holds two independently fetched collections:
- local_tasks    (app backend, scoped to the signed-in user)
- external_tasks (Google Tasks, scoped to the selected list)

and computes the visible list on read (see task_view.visible_tasks).

Key invariants:
- every mutation goes to exactly one backend, chosen by task.ref (LocalRef / ExternalRef),
- no optimistic updates: state changes only through a re-fetch after a confirmed write,
- backend errors never escape: they are logged and turned into a transient notice,
- a fetch response whose selection no longer matches current state is discarded.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from ..core.ports import DataGateway, ExternalTaskService, NoticeSink, TaskList
from ..errors import MakeCommandError, Unauthenticated, ValidationFailed, friendly_error_message
from ..google.mapping import choose_default_list, remote_payload, task_from_remote
from ..google.oauth import OAuthSession
from .task_models import (
    ExternalRef,
    LocalRef,
    Origin,
    Task,
    TaskDraft,
    TaskStatus,
    task_from_row,
    task_to_row,
)
from .task_view import FILTER_ALL, normalize_filter, visible_tasks

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TaskBoard:
    def __init__(
        self,
        gateway: DataGateway,
        *,
        google: ExternalTaskService | None = None,
        oauth: OAuthSession | None = None,
        user_id: str | None = None,
        notify: NoticeSink | None = None,
        clock: Callable[[], datetime] = _utc_now,
        on_signed_out: Callable[[], None] | None = None,
    ) -> None:
        self._gateway = gateway
        self._google = google
        self._oauth = oauth
        self._notify = notify
        self._clock = clock
        self.on_signed_out = on_signed_out

        self.user_id = user_id
        self.local_tasks: list[Task] = []
        self.external_tasks: list[Task] = []
        self.task_lists: list[TaskList] = []
        self.selected_list_id: str | None = None

        self.filter_status = FILTER_ALL
        self.sort_by_date = False
        self.notices: list[str] = []

        # Monotonic fetch tags for the stale-response guard.
        self._external_seq = 0
        self._external_applied = 0

    # ---- notices / error boundary ----

    def _notice(self, text: str) -> None:
        self.notices.append(text)
        if self._notify is not None:
            self._notify(text)

    def drain_notices(self) -> list[str]:
        out, self.notices = self.notices, []
        return out

    async def _guard(self, operation: str, action: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await action()
        except Unauthenticated as e:
            logger.info("%s: unauthenticated (%s)", operation, e.service)
            if e.service == "google":
                self._drop_external()
            else:
                self._backend_signed_out()
            self._notice(friendly_error_message(e))
            return False
        except MakeCommandError as e:
            logger.info("%s failed: %s", operation, e)
            self._notice(friendly_error_message(e))
            return False
        return True

    # ---- read side ----

    @property
    def google_connected(self) -> bool:
        return self._oauth is not None and self._oauth.connected

    def set_user(self, user_id: str | None) -> None:
        if user_id != self.user_id:
            self.local_tasks = []
        self.user_id = user_id

    def set_filter(self, filter_status: str) -> None:
        self.filter_status = normalize_filter(filter_status)

    def visible(self) -> list[Task]:
        return visible_tasks(
            self.local_tasks,
            self.external_tasks,
            filter_status=self.filter_status,
            sort_by_date=self.sort_by_date,
        )

    def _require_user(self) -> str:
        if not self.user_id:
            raise Unauthenticated("Not signed in.")
        return self.user_id

    def _require_google(self) -> ExternalTaskService:
        if self._google is None or self._oauth is None:
            raise Unauthenticated("Google Tasks is not configured.", service="google")
        if not self._oauth.connected:
            raise Unauthenticated("Google Tasks is not connected.", service="google")
        return self._google

    async def refresh_local(self) -> bool:
        async def _fetch() -> None:
            user_id = self._require_user()
            rows = await self._gateway.select(
                TASKS_TABLE, user_id=user_id, order_by="created_at", descending=True
            )
            if user_id != self.user_id:
                logger.debug("Discarding local tasks fetched for a previous user")
                return
            self.local_tasks = [task_from_row(r) for r in rows]
            logger.debug("Local tasks refreshed: %d", len(self.local_tasks))

        return await self._guard("fetch tasks", _fetch)

    async def refresh_lists(self) -> bool:
        if not self.google_connected:
            return True

        async def _fetch() -> None:
            google = self._require_google()
            lists = await google.list_task_lists()
            self.task_lists = lists
            ids = {tl.id for tl in lists}
            if self.selected_list_id not in ids:
                self.selected_list_id = choose_default_list(lists)
            logger.debug("Task lists refreshed: %d (selected=%s)", len(lists), self.selected_list_id)

        return await self._guard("fetch task lists", _fetch)

    async def refresh_external(self) -> bool:
        list_id = self.selected_list_id
        if not self.google_connected or list_id is None:
            self.external_tasks = []
            return True

        self._external_seq += 1
        seq = self._external_seq

        async def _fetch() -> None:
            google = self._require_google()
            items = await google.list_tasks(list_id)
            if list_id != self.selected_list_id or seq < self._external_applied:
                logger.debug("Discarding stale external fetch list=%s seq=%s", list_id, seq)
                return
            self._external_applied = seq
            self.external_tasks = [task_from_remote(list_id, item) for item in items]
            logger.debug("External tasks refreshed: %d", len(self.external_tasks))

        return await self._guard("fetch Google tasks", _fetch)

    async def select_list(self, list_id: str) -> bool:
        if list_id not in {tl.id for tl in self.task_lists}:
            self._notice(f"Unknown task list: {list_id}")
            return False
        self.selected_list_id = list_id
        return await self.refresh_external()

    async def load(self, current_url: str | None = None) -> None:
        """Initial load: detect an OAuth callback / stored token, then fetch both sources."""
        if self._oauth is not None:
            self._oauth.handle_redirect(current_url)
        if self.user_id:
            await self.refresh_local()
        if self.google_connected and await self.refresh_lists():
            await self.refresh_external()

    async def sync(self) -> bool:
        """
        "Sync" button: re-fetches both sources.

        Placeholder only: there is no merge or conflict resolution between sources.
        """
        ok_local = await self.refresh_local() if self.user_id else True
        ok_lists = await self.refresh_lists()
        ok_ext = await self.refresh_external()
        return ok_local and ok_lists and ok_ext

    # ---- Google session ----

    def connect_google(self) -> str | None:
        if self._oauth is None:
            self._notice("Google Tasks is not configured.")
            return None
        try:
            return self._oauth.initiate()
        except RuntimeError as e:
            logger.info("Google connect failed: %s", e)
            self._notice(str(e))
            return None

    async def complete_google_sign_in(self, callback_url: str) -> bool:
        if self._oauth is None:
            self._notice("Google Tasks is not configured.")
            return False
        if not self._oauth.handle_redirect(callback_url):
            self._notice("No valid Google sign-in found in that URL.")
            return False
        if await self.refresh_lists():
            return await self.refresh_external()
        return False

    def disconnect_google(self) -> None:
        if self._oauth is not None:
            self._oauth.sign_out()
        self._drop_external()

    def _backend_signed_out(self) -> None:
        self.set_user(None)
        if self.on_signed_out is not None:
            self.on_signed_out()

    def _drop_external(self) -> None:
        self.task_lists = []
        self.selected_list_id = None
        self.external_tasks = []
        self._external_seq += 1
        self._external_applied = self._external_seq

    # ---- mutations ----

    async def create(self, draft: TaskDraft, origin: Origin = Origin.LOCAL) -> bool:
        async def _local() -> None:
            draft.validate()
            user_id = self._require_user()
            await self._gateway.insert(TASKS_TABLE, task_to_row(draft, user_id))
            logger.info("Local task created")

        async def _external() -> None:
            draft.validate()
            google = self._require_google()
            list_id = self.selected_list_id
            if list_id is None:
                raise ValidationFailed("list_id", "No Google Tasks list selected.")
            await google.create_task(list_id, remote_payload(draft))
            logger.info("Google task created list=%s", list_id)

        if origin == Origin.EXTERNAL:
            if await self._guard("create Google task", _external):
                await self.refresh_external()
                return True
            return False

        if await self._guard("create task", _local):
            await self.refresh_local()
            return True
        return False

    async def update(self, task: Task, draft: TaskDraft) -> bool:
        if draft.status is None:
            draft = replace(draft, status=task.status)
        ref = task.ref

        if isinstance(ref, LocalRef):
            async def _local() -> None:
                draft.validate()
                user_id = self._require_user()
                row = task_to_row(draft, user_id)
                if draft.status != task.status:
                    completed = draft.status == TaskStatus.COMPLETED
                    row["completed_at"] = self._clock().isoformat() if completed else None
                await self._gateway.update(TASKS_TABLE, task.id, row, user_id=user_id)
                logger.info("Local task updated id=%s", task.id)

            return await self._after_local(await self._guard("update task", _local))

        if isinstance(ref, ExternalRef):
            async def _external() -> None:
                draft.validate()
                google = self._require_google()
                await google.update_task(ref.list_id, ref.task_id, remote_payload(draft))
                logger.info("Google task updated id=%s", ref.task_id)

            return await self._after_external(await self._guard("update Google task", _external))

        raise TypeError(f"Unsupported task ref: {ref!r}")

    async def delete(self, task: Task) -> bool:
        ref = task.ref

        if isinstance(ref, LocalRef):
            async def _local() -> None:
                user_id = self._require_user()
                await self._gateway.delete(TASKS_TABLE, task.id, user_id=user_id)
                logger.info("Local task deleted id=%s", task.id)

            return await self._after_local(await self._guard("delete task", _local))

        if isinstance(ref, ExternalRef):
            async def _external() -> None:
                google = self._require_google()
                await google.delete_task(ref.list_id, ref.task_id)
                logger.info("Google task deleted id=%s", ref.task_id)

            return await self._after_external(await self._guard("delete Google task", _external))

        raise TypeError(f"Unsupported task ref: {ref!r}")

    async def toggle_status(self, task: Task) -> bool:
        """
        pending <-> completed.

        Local: completed_at is stamped on completion and cleared on reopen;
        in_progress tasks are left alone. External: completed <-> needsAction
        through the regular update path (notes re-encoded).
        """
        if task.status == TaskStatus.COMPLETED:
            new_status = TaskStatus.PENDING
        elif task.status == TaskStatus.PENDING:
            new_status = TaskStatus.COMPLETED
        else:
            logger.debug("Toggle ignored for task id=%s status=%s", task.id, task.status.value)
            return False

        ref = task.ref
        if isinstance(ref, LocalRef):
            async def _local() -> None:
                user_id = self._require_user()
                completed_at = self._clock().isoformat() if new_status == TaskStatus.COMPLETED else None
                await self._gateway.update(
                    TASKS_TABLE,
                    task.id,
                    {"status": new_status.value, "completed_at": completed_at},
                    user_id=user_id,
                )
                logger.info("Local task id=%s -> %s", task.id, new_status.value)

            return await self._after_local(await self._guard("update task", _local))

        draft = replace(TaskDraft.from_task(task), status=new_status)
        return await self.update(task, draft)

    async def _after_local(self, ok: bool) -> bool:
        if ok:
            await self.refresh_local()
        return ok

    async def _after_external(self, ok: bool) -> bool:
        if ok:
            await self.refresh_external()
        return ok
