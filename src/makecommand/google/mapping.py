# src/makecommand/google/mapping.py

"""
Google Tasks <-> unified Task mapping.

Google Tasks has no priority field. Priority travels inside `notes`:
- urgent     -> notes = URGENT_MARKER + "\\n" + description
- otherwise  -> notes = description, read back as medium

Only "urgent" survives a round-trip; high/low come back as medium. Kept as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time, timezone
from typing import Any

from ..core.ports import TaskList
from ..tasks.task_models import (
    ExternalRef,
    Task,
    TaskDraft,
    TaskPriority,
    TaskStatus,
    parse_date,
    parse_timestamp,
)

URGENT_MARKER = "[URGENT]"

REMOTE_COMPLETED = "completed"
REMOTE_NEEDS_ACTION = "needsAction"

DEFAULT_LIST_TITLE = "My Tasks"


def encode_notes(description: str | None, priority: TaskPriority) -> str | None:
    text = (description or "").strip()
    if priority == TaskPriority.URGENT:
        return f"{URGENT_MARKER}\n{text}" if text else URGENT_MARKER
    return text or None


def decode_notes(notes: str | None) -> tuple[str | None, TaskPriority]:
    raw = notes or ""
    if not raw.startswith(URGENT_MARKER):
        return (raw or None), TaskPriority.MEDIUM

    rest = raw[len(URGENT_MARKER):]
    if rest.startswith("\r\n"):
        rest = rest[2:]
    elif rest.startswith("\n"):
        rest = rest[1:]
    return (rest or None), TaskPriority.URGENT


def status_from_remote(raw: str | None) -> TaskStatus:
    return TaskStatus.COMPLETED if raw == REMOTE_COMPLETED else TaskStatus.PENDING


def status_to_remote(status: TaskStatus | None) -> str:
    return REMOTE_COMPLETED if status == TaskStatus.COMPLETED else REMOTE_NEEDS_ACTION


def due_to_rfc3339(due: date) -> str:
    # Google stores only the date part of `due`; send midnight UTC.
    return datetime.combine(due, time.min, tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def task_from_remote(list_id: str, item: dict[str, Any]) -> Task:
    description, priority = decode_notes(item.get("notes"))
    updated = parse_timestamp(item.get("updated"))
    return Task(
        id=str(item["id"]),
        title=str(item.get("title") or ""),
        status=status_from_remote(item.get("status")),
        priority=priority,
        ref=ExternalRef(list_id=list_id, task_id=str(item["id"])),
        description=description,
        due_date=parse_date(item.get("due")),
        created_at=updated,
        updated_at=updated,
        completed_at=parse_timestamp(item.get("completed")),
    )


def remote_payload(draft: TaskDraft) -> dict[str, Any]:
    """JSON body for insert/patch: {title, notes, due, status}."""
    payload: dict[str, Any] = {
        "title": draft.title.strip(),
        "notes": encode_notes(draft.description, draft.priority),
        "status": status_to_remote(draft.status),
    }
    payload["due"] = due_to_rfc3339(draft.due_date) if draft.due_date else None
    return payload


def choose_default_list(lists: Sequence[TaskList]) -> str | None:
    for tl in lists:
        if tl.title == DEFAULT_LIST_TITLE:
            return tl.id
    return lists[0].id if lists else None
