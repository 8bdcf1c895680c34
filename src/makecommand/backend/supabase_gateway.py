# src/makecommand/backend/supabase_gateway.py

"""
Hosted backend adapter (Supabase-compatible: GoTrue auth + PostgREST tables).

Every row carries `user_id`. Reads always filter on it and writes always set it;
the server enforces row-level security, the client never relies on that alone.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.ports import AuthSession, Row
from ..errors import Unauthenticated, UpstreamRejected

logger = logging.getLogger(__name__)

TABLES = frozenset({"tasks", "projects", "thoughts", "project_ideas", "calendar_events"})


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table!r}")


def _decode(operation: str, resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        logger.info("Backend: %s returned a non-JSON body", operation)
        raise UpstreamRejected(operation, resp.status_code, "invalid JSON response") from None


def _rows(operation: str, resp: httpx.Response) -> list[Row]:
    """PostgREST answers with a JSON array of rows; rows without an id are unusable."""
    data = _decode(operation, resp)
    if data is None:
        return []
    if not isinstance(data, list):
        raise UpstreamRejected(operation, resp.status_code, "unexpected response shape")
    out: list[Row] = []
    for row in data:
        if isinstance(row, dict) and row.get("id") is not None:
            out.append(row)
        else:
            logger.warning("Backend: %s skipped a row without id", operation)
    return out


def _upstream_message(resp: httpx.Response) -> str:
    """PostgREST uses {"message": ...}; GoTrue uses {"error_description"|"msg": ...}."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                return val
    return resp.reason_phrase or resp.text[:200]


class SupabaseGateway:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        if not base_url or not base_url.strip():
            raise RuntimeError("Backend URL is not set. Set MAKECOMMAND_BACKEND_URL in your .env.")
        if not anon_key or not anon_key.strip():
            raise RuntimeError("Backend key is not set. Set MAKECOMMAND_BACKEND_ANON_KEY in your .env.")

        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http is None
        self._session: AuthSession | None = None

    @property
    def session(self) -> AuthSession | None:
        return self._session

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ---- low-level helpers ----

    def _headers(self, *, authed: bool = True) -> dict[str, str]:
        headers = {"apikey": self._anon_key}
        if authed:
            if self._session is None:
                raise Unauthenticated("Not signed in.")
            headers["Authorization"] = f"Bearer {self._session.access_token}"
        return headers

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        authed: bool = True,
        params: dict[str, str] | None = None,
        json: Any = None,
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        headers = self._headers(authed=authed)
        if extra_headers:
            headers.update(extra_headers)

        try:
            resp = await self._http.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.info("Backend: %s transport error (%s)", operation, e.__class__.__name__)
            raise UpstreamRejected(operation, None, str(e) or e.__class__.__name__) from e

        if resp.status_code == 401 and authed:
            self._session = None
            raise Unauthenticated("Backend session expired. Sign in again.")

        if resp.is_error:
            msg = _upstream_message(resp)
            logger.info("Backend: %s failed status=%s msg=%s", operation, resp.status_code, msg)
            raise UpstreamRejected(operation, resp.status_code, msg)

        return resp

    def _session_from_auth(self, data: Any, fallback_email: str) -> AuthSession:
        if not isinstance(data, dict):
            raise UpstreamRejected("sign in", None, "unexpected response shape")
        token = data.get("access_token")
        user = data.get("user") or {}
        if not token or not user.get("id"):
            # sign-up with email confirmation enabled returns the user but no session
            raise Unauthenticated("Account created; confirm your email, then sign in.")
        return AuthSession(
            user_id=str(user["id"]),
            email=user.get("email") or fallback_email,
            access_token=str(token),
        )

    # ---- auth ----

    async def sign_in(self, email: str, password: str) -> AuthSession:
        resp = await self._send(
            "sign in",
            "POST",
            "/auth/v1/token",
            authed=False,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._session = self._session_from_auth(_decode("sign in", resp), email)
        logger.info("Backend: signed in user_id=%s", self._session.user_id)
        return self._session

    async def sign_up(self, email: str, password: str) -> AuthSession:
        resp = await self._send(
            "sign up",
            "POST",
            "/auth/v1/signup",
            authed=False,
            json={"email": email, "password": password},
        )
        self._session = self._session_from_auth(_decode("sign up", resp), email)
        logger.info("Backend: signed up user_id=%s", self._session.user_id)
        return self._session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        try:
            await self._send("sign out", "POST", "/auth/v1/logout")
        finally:
            self._session = None
        logger.info("Backend: signed out")

    # ---- tables ----

    async def select(
        self,
        table: str,
        *,
        user_id: str,
        order_by: str | None = None,
        descending: bool = False,
        filters: dict[str, str] | None = None,
    ) -> list[Row]:
        _check_table(table)
        params = {"select": "*", "user_id": f"eq.{user_id}"}
        for col, value in (filters or {}).items():
            params[col] = f"eq.{value}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"

        resp = await self._send(f"fetch {table}", "GET", f"/rest/v1/{table}", params=params)
        return _rows(f"fetch {table}", resp)

    async def insert(self, table: str, row: Row) -> list[Row]:
        _check_table(table)
        if not row.get("user_id"):
            raise ValueError("insert requires user_id")
        resp = await self._send(
            f"create {table}",
            "POST",
            f"/rest/v1/{table}",
            json=[row],
            extra_headers={"Prefer": "return=representation"},
        )
        return _rows(f"create {table}", resp)

    async def update(self, table: str, row_id: str, values: Row, *, user_id: str) -> list[Row]:
        _check_table(table)
        resp = await self._send(
            f"update {table}",
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": f"eq.{row_id}", "user_id": f"eq.{user_id}"},
            json=values,
            extra_headers={"Prefer": "return=representation"},
        )
        return _rows(f"update {table}", resp)

    async def delete(self, table: str, row_id: str, *, user_id: str) -> None:
        _check_table(table)
        await self._send(
            f"delete {table}",
            "DELETE",
            f"/rest/v1/{table}",
            params={"id": f"eq.{row_id}", "user_id": f"eq.{user_id}"},
        )
