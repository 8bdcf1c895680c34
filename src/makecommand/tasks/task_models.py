# src/makecommand/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..errors import ValidationFailed


class TaskStatus(StrEnum):
    """
    Unified task status.

    Notes:
    - external (Google) tasks only ever map to PENDING or COMPLETED.
    - IN_PROGRESS is reachable for local tasks only (set explicitly, never by toggle).
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM

    @property
    def rank(self) -> int:
        """Sort rank: urgent first, low last."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class Origin(StrEnum):
    LOCAL = "local"
    EXTERNAL = "external"


@dataclass(frozen=True, slots=True)
class LocalRef:
    """Task row owned by the app backend (scoped to user_id)."""

    user_id: str


@dataclass(frozen=True, slots=True)
class ExternalRef:
    """Task owned by Google Tasks: (list, task) pair."""

    list_id: str
    task_id: str


TaskRef = LocalRef | ExternalRef


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    ref: TaskRef

    description: str | None = None
    due_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    project_id: str | None = None

    @property
    def origin(self) -> Origin:
        return Origin.EXTERNAL if isinstance(self.ref, ExternalRef) else Origin.LOCAL

    @property
    def external_ref(self) -> ExternalRef | None:
        return self.ref if isinstance(self.ref, ExternalRef) else None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


@dataclass(slots=True)
class TaskDraft:
    """Form state for create/edit. Empty strings mean "not set"."""

    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    project_id: str = ""
    status: TaskStatus | None = None

    def validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationFailed("title", "Task title is required.")

    @classmethod
    def from_task(cls, task: Task) -> TaskDraft:
        return cls(
            title=task.title,
            description=task.description or "",
            priority=task.priority,
            due_date=task.due_date,
            project_id=task.project_id or "",
            status=task.status,
        )


def parse_date(raw: Any) -> date | None:
    """Accept 'YYYY-MM-DD' or a full RFC3339 timestamp; keep only the calendar date."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def parse_timestamp(raw: Any) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def task_from_row(row: dict[str, Any]) -> Task:
    """Build a local Task from a backend `tasks` row."""
    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        status=TaskStatus.from_db(row.get("status")),
        priority=TaskPriority.from_db(row.get("priority")),
        ref=LocalRef(user_id=str(row.get("user_id") or "")),
        description=row.get("description") or None,
        due_date=parse_date(row.get("due_date")),
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
        completed_at=parse_timestamp(row.get("completed_at")),
        project_id=row.get("project_id") or None,
    )


def task_to_row(draft: TaskDraft, user_id: str) -> dict[str, Any]:
    """Insert/update payload for the backend `tasks` table (always carries user_id)."""
    row: dict[str, Any] = {
        "title": draft.title.strip(),
        "description": draft.description.strip() or None,
        "priority": draft.priority.value,
        "due_date": draft.due_date.isoformat() if draft.due_date else None,
        "project_id": draft.project_id.strip() or None,
        "user_id": user_id,
    }
    if draft.status is not None:
        row["status"] = draft.status.value
    return row
