# src/makecommand/records/record_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from ..tasks.task_models import TaskPriority, parse_date, parse_timestamp

DEFAULT_PROJECT_COLOR = "#00ff88"

PROJECT_COLORS = (
    "#00ff88", "#ff0066", "#0088ff", "#ffaa00",
    "#8800ff", "#ff8800", "#00ffaa", "#ff4400",
    "#4400ff", "#88ff00", "#ff0088", "#0066ff",
)


class EventType(StrEnum):
    BIRTHDAY = "birthday"
    MEETING = "meeting"
    REMINDER = "reminder"
    PERSONAL = "personal"
    WORK = "work"

    @classmethod
    def from_db(cls, raw: str | None) -> EventType:
        if not raw:
            return cls.PERSONAL
        try:
            return cls(raw)
        except ValueError:
            return cls.PERSONAL


def parse_tags(raw: str | None) -> list[str]:
    """'a, b,,c ' -> ['a', 'b', 'c']"""
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


def _tags_from_row(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(t) for t in value if str(t).strip()]
    if isinstance(value, str):
        return parse_tags(value)
    return []


@dataclass(frozen=True, slots=True)
class Thought:
    id: str
    title: str
    content: str
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None

    def search_text(self) -> tuple[str, ...]:
        return (self.title, self.content)

    @staticmethod
    def from_row(row: dict[str, Any]) -> Thought:
        return Thought(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            content=str(row.get("content") or ""),
            tags=_tags_from_row(row.get("tags")),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {"title": self.title, "content": self.content, "tags": list(self.tags), "user_id": user_id}


@dataclass(frozen=True, slots=True)
class Idea:
    id: str
    title: str
    description: str
    tags: list[str] = field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime | None = None

    def search_text(self) -> tuple[str, ...]:
        return (self.title, self.description)

    @staticmethod
    def from_row(row: dict[str, Any]) -> Idea:
        return Idea(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            description=str(row.get("description") or ""),
            tags=_tags_from_row(row.get("tags")),
            priority=TaskPriority.from_db(row.get("priority")),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "priority": self.priority.value,
            "user_id": user_id,
        }


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    description: str | None = None
    color: str = DEFAULT_PROJECT_COLOR
    created_at: datetime | None = None

    @staticmethod
    def from_row(row: dict[str, Any]) -> Project:
        return Project(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            description=row.get("description") or None,
            color=str(row.get("color") or DEFAULT_PROJECT_COLOR),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description or None,
            "color": self.color,
            "user_id": user_id,
        }


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    id: str
    title: str
    event_date: date
    event_type: EventType = EventType.PERSONAL
    description: str | None = None
    event_time: str | None = None
    all_day: bool = False
    created_at: datetime | None = None

    @staticmethod
    def from_row(row: dict[str, Any]) -> CalendarEvent:
        return CalendarEvent(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            event_date=parse_date(row.get("event_date")) or date.min,
            event_type=EventType.from_db(row.get("event_type")),
            description=row.get("description") or None,
            event_time=row.get("event_time") or None,
            all_day=bool(row.get("all_day")),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self, user_id: str) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description or None,
            "event_type": self.event_type.value,
            "event_date": self.event_date.isoformat(),
            # all-day events carry no time
            "event_time": None if self.all_day else (self.event_time or None),
            "all_day": self.all_day,
            "user_id": user_id,
        }
