# src/makecommand/google/tasks_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import GOOGLE_TASKS_BASE_URL
from ..core.ports import TaskList
from ..errors import Unauthenticated, UpstreamRejected
from .oauth import OAuthSession

logger = logging.getLogger(__name__)


def _upstream_message(resp: httpx.Response) -> str:
    """Google error bodies look like {"error": {"code": 404, "message": "..."}}."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return str(body.get("error_description") or err)
    return resp.reason_phrase or resp.text[:200]


class GoogleTasksClient:
    """
    Thin async wrapper over the Google Tasks REST API.

    Behavior:
    - every call needs a signed-in OAuthSession; otherwise Unauthenticated is raised
      before any request is sent,
    - one round-trip per call, no retries,
    - 401 -> session.invalidate() then Unauthenticated,
    - other non-2xx / transport errors -> UpstreamRejected(operation, status, message).
    """

    def __init__(
        self,
        session: OAuthSession,
        *,
        http: httpx.AsyncClient | None = None,
        base_url: str = GOOGLE_TASKS_BASE_URL,
        timeout: float = 15.0,
    ) -> None:
        self._session = session
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http is None
        self._base_url = base_url.rstrip("/")

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        token = self._session.access_token()
        url = f"{self._base_url}/{path.lstrip('/')}"

        try:
            resp = await self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.info("Google Tasks: %s transport error (%s)", operation, e.__class__.__name__)
            raise UpstreamRejected(operation, None, str(e) or e.__class__.__name__) from e

        if resp.status_code == 401:
            self._session.invalidate(f"401 on {operation}")
            raise Unauthenticated("Google Tasks rejected the access token.", service="google")

        if resp.is_error:
            msg = _upstream_message(resp)
            logger.info("Google Tasks: %s failed status=%s msg=%s", operation, resp.status_code, msg)
            raise UpstreamRejected(operation, resp.status_code, msg)

        logger.debug("Google Tasks: %s ok status=%s", operation, resp.status_code)
        return resp

    @staticmethod
    def _body(operation: str, resp: httpx.Response) -> dict[str, Any]:
        """Decode a 2xx JSON object; anything else (HTML from a proxy, a bare list) is rejected."""
        if not resp.content:
            return {}
        try:
            body = resp.json()
        except ValueError:
            logger.info("Google Tasks: %s returned a non-JSON body", operation)
            raise UpstreamRejected(operation, resp.status_code, "invalid JSON response") from None
        if not isinstance(body, dict):
            raise UpstreamRejected(operation, resp.status_code, "unexpected response shape")
        return body

    def _items(self, operation: str, resp: httpx.Response) -> list[dict[str, Any]]:
        items = self._body(operation, resp).get("items") or []
        if not isinstance(items, list):
            raise UpstreamRejected(operation, resp.status_code, "unexpected response shape")
        out = []
        for item in items:
            if isinstance(item, dict) and item.get("id"):
                out.append(item)
            else:
                logger.warning("Google Tasks: %s skipped an item without id", operation)
        return out

    async def list_task_lists(self) -> list[TaskList]:
        op = "list task lists"
        resp = await self._request(op, "GET", "users/@me/lists")
        return [TaskList(id=str(i["id"]), title=str(i.get("title") or "")) for i in self._items(op, resp)]

    async def list_tasks(self, list_id: str) -> list[dict[str, Any]]:
        op = "list tasks"
        # Without showCompleted/showHidden Google silently drops finished items.
        resp = await self._request(
            op,
            "GET",
            f"lists/{list_id}/tasks",
            params={"showCompleted": "true", "showHidden": "true"},
        )
        return self._items(op, resp)

    async def create_task(self, list_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request("create task", "POST", f"lists/{list_id}/tasks", json=payload)
        return self._body("create task", resp)

    async def update_task(self, list_id: str, task_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request(
            "update task", "PATCH", f"lists/{list_id}/tasks/{task_id}", json=payload
        )
        return self._body("update task", resp)

    async def delete_task(self, list_id: str, task_id: str) -> None:
        await self._request("delete task", "DELETE", f"lists/{list_id}/tasks/{task_id}")
