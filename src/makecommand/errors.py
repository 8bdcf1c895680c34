# src/makecommand/errors.py

"""
Error taxonomy shared by the backends and the view-model.

- Unauthenticated: no session / no token / token rejected (401).
- UpstreamRejected: non-2xx or transport failure from either backend.
- ValidationFailed: client-side input check (e.g. empty title).

Connectors never show raw exceptions; they go through friendly_error_message().
"""

from __future__ import annotations


class MakeCommandError(Exception):
    """Base class for all application errors."""


class Unauthenticated(MakeCommandError):
    def __init__(self, message: str = "Not authenticated.", *, service: str = "backend") -> None:
        super().__init__(message)
        self.service = service


class UpstreamRejected(MakeCommandError):
    def __init__(self, operation: str, status: int | None, message: str) -> None:
        self.operation = operation
        self.status = status
        self.message = (message or "").strip() or "no details"
        status_s = f"HTTP {status}" if status is not None else "network error"
        super().__init__(f"{operation} failed ({status_s}): {self.message}")


class ValidationFailed(MakeCommandError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


def friendly_error_message(err: Exception) -> str:
    if isinstance(err, Unauthenticated):
        if err.service == "google":
            return "Google Tasks session expired or missing. Use /google connect to sign in again."
        return "You are not signed in. Use /login <email> <password>."
    if isinstance(err, UpstreamRejected):
        return f"Server rejected the request: {err}"
    if isinstance(err, ValidationFailed):
        return str(err)
    return str(err).strip() or "Unexpected error."
