# src/makecommand/records/records_api.py

"""
User-scoped CRUD for thoughts, ideas, projects and calendar events,
plus the small client-side views the pages use (search, events on a day).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any, Protocol, TypeVar

from ..core.ports import DataGateway
from ..errors import ValidationFailed
from .record_models import CalendarEvent, Idea, Project, Thought

logger = logging.getLogger(__name__)

THOUGHTS = "thoughts"
IDEAS = "project_ideas"
PROJECTS = "projects"
EVENTS = "calendar_events"


class _Searchable(Protocol):
    tags: list[str]

    def search_text(self) -> tuple[str, ...]: ...


S = TypeVar("S", bound=_Searchable)


def search(items: Iterable[S], term: str | None) -> list[S]:
    """Case-insensitive substring match over title/body and any tag."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(items)
    out: list[S] = []
    for item in items:
        if any(needle in text.lower() for text in item.search_text()):
            out.append(item)
        elif any(needle in tag.lower() for tag in item.tags):
            out.append(item)
    return out


def events_on(events: Iterable[CalendarEvent], day: date) -> list[CalendarEvent]:
    return [e for e in events if e.event_date == day]


def _require(value: str, field: str, label: str) -> None:
    if not value or not value.strip():
        raise ValidationFailed(field, f"{label} is required.")


class RecordsRepo:
    def __init__(self, gateway: DataGateway, user_id: str) -> None:
        self._gateway = gateway
        self._user_id = user_id

    async def _save(self, table: str, record_id: str, row: dict[str, Any]) -> None:
        if record_id:
            await self._gateway.update(table, record_id, row, user_id=self._user_id)
            logger.info("%s updated id=%s", table, record_id)
        else:
            await self._gateway.insert(table, row)
            logger.info("%s created", table)

    async def _delete(self, table: str, record_id: str) -> None:
        await self._gateway.delete(table, record_id, user_id=self._user_id)
        logger.info("%s deleted id=%s", table, record_id)

    # ---- thoughts ----

    async def list_thoughts(self) -> list[Thought]:
        rows = await self._gateway.select(
            THOUGHTS, user_id=self._user_id, order_by="created_at", descending=True
        )
        return [Thought.from_row(r) for r in rows]

    async def save_thought(self, thought: Thought) -> None:
        _require(thought.title, "title", "Title")
        await self._save(THOUGHTS, thought.id, thought.to_row(self._user_id))

    async def delete_thought(self, thought_id: str) -> None:
        await self._delete(THOUGHTS, thought_id)

    # ---- ideas ----

    async def list_ideas(self) -> list[Idea]:
        rows = await self._gateway.select(
            IDEAS, user_id=self._user_id, order_by="created_at", descending=True
        )
        return [Idea.from_row(r) for r in rows]

    async def save_idea(self, idea: Idea) -> None:
        _require(idea.title, "title", "Title")
        await self._save(IDEAS, idea.id, idea.to_row(self._user_id))

    async def delete_idea(self, idea_id: str) -> None:
        await self._delete(IDEAS, idea_id)

    # ---- projects ----

    async def list_projects(self, *, by_name: bool = False) -> list[Project]:
        # Task forms list projects alphabetically; the projects page newest first.
        if by_name:
            rows = await self._gateway.select(PROJECTS, user_id=self._user_id, order_by="name")
        else:
            rows = await self._gateway.select(
                PROJECTS, user_id=self._user_id, order_by="created_at", descending=True
            )
        return [Project.from_row(r) for r in rows]

    async def save_project(self, project: Project) -> None:
        _require(project.name, "name", "Project name")
        await self._save(PROJECTS, project.id, project.to_row(self._user_id))

    async def delete_project(self, project_id: str) -> None:
        await self._delete(PROJECTS, project_id)

    # ---- calendar events ----

    async def list_events(self) -> list[CalendarEvent]:
        rows = await self._gateway.select(EVENTS, user_id=self._user_id, order_by="event_date")
        return [CalendarEvent.from_row(r) for r in rows]

    async def save_event(self, event: CalendarEvent) -> None:
        _require(event.title, "title", "Event title")
        await self._save(EVENTS, event.id, event.to_row(self._user_id))

    async def delete_event(self, event_id: str) -> None:
        await self._delete(EVENTS, event_id)


def project_names(projects: Sequence[Project]) -> dict[str, str]:
    return {p.id: p.name for p in projects}
