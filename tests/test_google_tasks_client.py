# tests/test_google_tasks_client.py

from __future__ import annotations

import json

import httpx
import pytest

from makecommand.errors import Unauthenticated, UpstreamRejected
from makecommand.google.oauth import OAuthSession
from makecommand.google.tasks_client import GoogleTasksClient
from makecommand.tasks.task_board import TaskBoard

from .conftest import CALLBACK_URL
from .fakes import FakeGateway

BASE = "https://tasks.test/tasks/v1"


class Recorder:
    """MockTransport handler returning queued responses and recording requests."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def _client(oauth: OAuthSession, rec: Recorder) -> GoogleTasksClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(rec))
    return GoogleTasksClient(oauth, http=http, base_url=BASE)


@pytest.mark.asyncio
async def test_calls_require_sign_in_before_network(oauth: OAuthSession) -> None:
    rec = Recorder()
    client = _client(oauth, rec)
    with pytest.raises(Unauthenticated):
        await client.list_task_lists()
    assert rec.requests == []


@pytest.mark.asyncio
async def test_list_task_lists_sends_bearer(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(200, json={"items": [{"id": "l1", "title": "My Tasks"}]}))
    client = _client(oauth, rec)

    lists = await client.list_task_lists()

    assert [(tl.id, tl.title) for tl in lists] == [("l1", "My Tasks")]
    req = rec.requests[0]
    assert str(req.url) == f"{BASE}/users/@me/lists"
    assert req.headers["Authorization"] == "Bearer ya29.token"


@pytest.mark.asyncio
async def test_list_tasks_requests_completed_and_hidden(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(200, json={}))
    client = _client(oauth, rec)

    assert await client.list_tasks("l1") == []
    params = rec.requests[0].url.params
    assert params["showCompleted"] == "true"
    assert params["showHidden"] == "true"


@pytest.mark.asyncio
async def test_update_uses_patch_with_json_body(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(200, json={"id": "t1", "title": "x"}))
    client = _client(oauth, rec)

    await client.update_task("l1", "t1", {"title": "x", "status": "completed"})

    req = rec.requests[0]
    assert req.method == "PATCH"
    assert req.url.path.endswith("/lists/l1/tasks/t1")
    assert json.loads(req.content) == {"title": "x", "status": "completed"}


@pytest.mark.asyncio
async def test_401_signs_out_and_next_call_makes_no_request(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(401, json={"error": {"code": 401, "message": "Invalid Credentials"}}))
    client = _client(oauth, rec)

    with pytest.raises(Unauthenticated):
        await client.delete_task("l1", "t1")

    assert not oauth.connected
    with pytest.raises(Unauthenticated):
        await client.list_task_lists()
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_non_2xx_carries_operation_and_upstream_message(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(404, json={"error": {"code": 404, "message": "Task list not found."}}))
    client = _client(oauth, rec)

    with pytest.raises(UpstreamRejected) as exc:
        await client.create_task("nope", {"title": "x"})

    err = exc.value
    assert err.operation == "create task"
    assert err.status == 404
    assert "Task list not found." in str(err)
    assert oauth.connected


@pytest.mark.asyncio
async def test_transport_error_is_upstream_rejected(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)

    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = GoogleTasksClient(
        oauth, http=httpx.AsyncClient(transport=httpx.MockTransport(boom)), base_url=BASE
    )
    with pytest.raises(UpstreamRejected) as exc:
        await client.list_tasks("l1")
    assert exc.value.status is None


@pytest.mark.asyncio
async def test_html_success_body_is_upstream_rejected(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(200, text="<html>captive portal</html>"))
    client = _client(oauth, rec)

    with pytest.raises(UpstreamRejected) as exc:
        await client.list_task_lists()
    assert exc.value.status == 200
    assert "invalid JSON response" in str(exc.value)
    assert oauth.connected


@pytest.mark.asyncio
async def test_items_without_id_are_skipped(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(
        httpx.Response(200, json={"items": [{"title": "no id"}, {"id": "l2", "title": "ok"}]}),
        httpx.Response(200, json={"items": [{"id": "t1", "title": "a"}, "junk", {"id": "", "title": "b"}]}),
    )
    client = _client(oauth, rec)

    assert [tl.id for tl in await client.list_task_lists()] == ["l2"]
    assert [i["id"] for i in await client.list_tasks("l2")] == ["t1"]


@pytest.mark.asyncio
async def test_non_object_body_is_upstream_rejected(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    rec = Recorder(httpx.Response(200, json=["not", "an", "object"]))
    with pytest.raises(UpstreamRejected):
        await _client(oauth, rec).list_tasks("l1")


@pytest.mark.asyncio
async def test_board_turns_garbled_google_reply_into_notice(oauth: OAuthSession) -> None:
    oauth.handle_redirect(CALLBACK_URL)
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>captive portal</html>"))
    )
    board = TaskBoard(FakeGateway(), google=GoogleTasksClient(oauth, http=http, base_url=BASE), oauth=oauth)

    assert await board.refresh_lists() is False

    (notice,) = board.drain_notices()
    assert "invalid JSON response" in notice
    assert board.google_connected
    assert board.task_lists == []
