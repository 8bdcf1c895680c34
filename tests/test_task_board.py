# tests/test_task_board.py

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from makecommand.errors import Unauthenticated, UpstreamRejected
from makecommand.google.mapping import URGENT_MARKER
from makecommand.google.oauth import OAuthSession
from makecommand.tasks.task_board import TaskBoard
from makecommand.tasks.task_models import Origin, TaskDraft, TaskPriority, TaskStatus

from .conftest import CALLBACK_URL, FIXED_NOW, USER_ID
from .fakes import FakeGateway, FakeGoogleTasks


async def _connect(board: TaskBoard) -> None:
    await board.load(CALLBACK_URL)


@pytest.mark.asyncio
async def test_load_fetches_local_and_default_external_list(
    board: TaskBoard, gateway: FakeGateway, google: FakeGoogleTasks
) -> None:
    gateway.seed("tasks", title="mine", user_id=USER_ID, created_at="2024-01-01T00:00:00+00:00")
    gateway.seed("tasks", title="someone else", user_id="intruder")
    google.items["main"] = [{"id": "g1", "title": "from google", "status": "needsAction"}]
    google.items["work"] = [{"id": "w1", "title": "work item"}]

    await _connect(board)

    assert [t.title for t in board.local_tasks] == ["mine"]
    assert board.selected_list_id == "main"
    assert [t.title for t in board.external_tasks] == ["from google"]
    assert [t.origin for t in board.visible()] == [Origin.LOCAL, Origin.EXTERNAL]
    select = [c for c in gateway.calls if c[0] == "select"][0]
    assert select[2]["user_id"] == USER_ID


@pytest.mark.asyncio
async def test_no_external_fetch_without_google_session(
    board: TaskBoard, google: FakeGoogleTasks
) -> None:
    await board.load(None)
    assert not board.google_connected
    assert board.external_tasks == []
    assert google.calls == []


@pytest.mark.asyncio
async def test_create_local_sets_user_and_refetches(board: TaskBoard, gateway: FakeGateway) -> None:
    ok = await board.create(TaskDraft(title="Write report", priority=TaskPriority.HIGH, due_date=date(2024, 4, 1)))

    assert ok
    op, table, row = gateway.calls[0]
    assert (op, table) == ("insert", "tasks")
    assert row["user_id"] == USER_ID
    assert row["due_date"] == "2024-04-01"
    assert gateway.calls[-1][0] == "select"
    assert [t.title for t in board.local_tasks] == ["Write report"]


@pytest.mark.asyncio
async def test_create_with_empty_title_is_rejected_without_calls(
    board: TaskBoard, gateway: FakeGateway
) -> None:
    assert await board.create(TaskDraft(title="   ")) is False
    assert gateway.calls == []
    assert board.drain_notices() == ["Task title is required."]


@pytest.mark.asyncio
async def test_create_external_encodes_urgency(board: TaskBoard, google: FakeGoogleTasks) -> None:
    await _connect(board)
    ok = await board.create(
        TaskDraft(title="Milk", description="buy milk", priority=TaskPriority.URGENT),
        Origin.EXTERNAL,
    )

    assert ok
    op, (list_id, payload) = [c for c in google.calls if c[0] == "create_task"][0]
    assert list_id == "main"
    assert payload["notes"] == f"{URGENT_MARKER}\nbuy milk"

    (task,) = board.external_tasks
    assert task.description == "buy milk"
    assert task.priority == TaskPriority.URGENT


@pytest.mark.asyncio
async def test_mutations_route_by_origin_only(
    board: TaskBoard, gateway: FakeGateway, google: FakeGoogleTasks
) -> None:
    gateway.seed("tasks", title="local", user_id=USER_ID)
    google.items["main"] = [{"id": "g1", "title": "remote"}]
    await _connect(board)
    gateway.calls.clear()
    google.calls.clear()

    (remote,) = board.external_tasks
    assert remote.origin == Origin.EXTERNAL
    assert await board.delete(remote)
    assert [c[0] for c in gateway.calls] == []
    assert [c[0] for c in google.calls] == ["delete_task", "list_tasks"]

    google.calls.clear()
    local = board.local_tasks[0]
    assert await board.delete(local)
    assert [c[0] for c in google.calls] == []
    assert gateway.calls[0] == ("delete", "tasks", {"id": local.id, "user_id": USER_ID})


@pytest.mark.asyncio
async def test_external_update_reapplies_marker(board: TaskBoard, google: FakeGoogleTasks) -> None:
    google.items["main"] = [{"id": "g1", "title": "remote", "notes": "plain"}]
    await _connect(board)
    task = board.external_tasks[0]

    draft = TaskDraft.from_task(task)
    draft.priority = TaskPriority.URGENT
    assert await board.update(task, draft)
    assert board.external_tasks[0].priority == TaskPriority.URGENT
    assert board.external_tasks[0].description == "plain"

    # high has no encoding: it comes back as medium
    task = board.external_tasks[0]
    draft = TaskDraft.from_task(task)
    draft.priority = TaskPriority.HIGH
    assert await board.update(task, draft)
    assert google.items["main"][0]["notes"] == "plain"
    assert board.external_tasks[0].priority == TaskPriority.MEDIUM


@pytest.mark.asyncio
async def test_local_toggle_sets_and_clears_completion_timestamp(
    board: TaskBoard, gateway: FakeGateway
) -> None:
    row = gateway.seed("tasks", title="t", status="pending", user_id=USER_ID)
    await board.refresh_local()

    assert await board.toggle_status(board.local_tasks[0])
    assert row["status"] == "completed"
    assert row["completed_at"] == FIXED_NOW.isoformat()
    assert board.local_tasks[0].completed_at == FIXED_NOW

    assert await board.toggle_status(board.local_tasks[0])
    assert row["status"] == "pending"
    assert row["completed_at"] is None
    assert board.local_tasks[0].completed_at is None


@pytest.mark.asyncio
async def test_toggle_ignores_in_progress(board: TaskBoard, gateway: FakeGateway) -> None:
    gateway.seed("tasks", title="t", status="in_progress", user_id=USER_ID)
    await board.refresh_local()
    gateway.calls.clear()

    assert await board.toggle_status(board.local_tasks[0]) is False
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_external_toggle_maps_to_needs_action(board: TaskBoard, google: FakeGoogleTasks) -> None:
    google.items["main"] = [
        {"id": "g1", "title": "remote", "status": "completed", "notes": f"{URGENT_MARKER}\nx"}
    ]
    await _connect(board)

    assert await board.toggle_status(board.external_tasks[0])
    item = google.items["main"][0]
    assert item["status"] == "needsAction"
    assert item["notes"] == f"{URGENT_MARKER}\nx"
    assert board.external_tasks[0].status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_failed_write_keeps_state_and_surfaces_notice(
    board: TaskBoard, gateway: FakeGateway
) -> None:
    gateway.seed("tasks", title="t", user_id=USER_ID)
    await board.refresh_local()
    before = list(board.local_tasks)
    gateway.fail_with = UpstreamRejected("update tasks", 500, "boom")

    assert await board.toggle_status(board.local_tasks[0]) is False
    assert board.local_tasks == before
    (notice,) = board.drain_notices()
    assert "boom" in notice


@pytest.mark.asyncio
async def test_external_401_disconnects_and_clears_external_state(
    board: TaskBoard, google: FakeGoogleTasks, oauth: OAuthSession
) -> None:
    google.items["main"] = [{"id": "g1", "title": "remote"}]
    await _connect(board)
    assert board.external_tasks

    google.reject_token = True
    assert await board.sync() is False

    assert not oauth.connected
    assert not board.google_connected
    assert board.external_tasks == []
    assert board.selected_list_id is None
    assert any("Google" in n for n in board.drain_notices())


@pytest.mark.asyncio
async def test_disconnect_clears_selection_and_cache(board: TaskBoard, google: FakeGoogleTasks) -> None:
    google.items["main"] = [{"id": "g1", "title": "remote"}]
    await _connect(board)

    board.disconnect_google()

    assert board.task_lists == []
    assert board.selected_list_id is None
    assert board.external_tasks == []
    assert not board.google_connected


@pytest.mark.asyncio
async def test_stale_list_response_is_discarded(board: TaskBoard, google: FakeGoogleTasks) -> None:
    google.items["main"] = [{"id": "m1", "title": "main item"}]
    google.items["work"] = [{"id": "w1", "title": "work item"}]
    await _connect(board)

    google.delays["work"] = 0.05
    slow = asyncio.create_task(board.select_list("work"))
    await asyncio.sleep(0)
    await board.select_list("main")
    await slow

    assert board.selected_list_id == "main"
    assert [t.title for t in board.external_tasks] == ["main item"]


@pytest.mark.asyncio
async def test_sync_refetches_both_sources(
    board: TaskBoard, gateway: FakeGateway, google: FakeGoogleTasks
) -> None:
    await _connect(board)
    gateway.calls.clear()
    google.calls.clear()

    assert await board.sync()

    assert [c[0] for c in gateway.calls] == ["select"]
    assert [c[0] for c in google.calls] == ["list_task_lists", "list_tasks"]


@pytest.mark.asyncio
async def test_signed_out_user_gets_notice(gateway: FakeGateway) -> None:
    board = TaskBoard(gateway)
    assert await board.create(TaskDraft(title="x")) is False
    assert gateway.calls == []
    assert board.drain_notices()


@pytest.mark.asyncio
async def test_backend_401_signs_user_out_and_calls_hook(board: TaskBoard, gateway: FakeGateway) -> None:
    gateway.seed("tasks", title="t", user_id=USER_ID)
    await board.refresh_local()
    signed_out: list[bool] = []
    board.on_signed_out = lambda: signed_out.append(True)
    gateway.fail_with = Unauthenticated("Backend session expired. Sign in again.")

    assert await board.refresh_local() is False

    assert board.user_id is None
    assert board.local_tasks == []
    assert signed_out == [True]
    assert "/login" in board.drain_notices()[0]
