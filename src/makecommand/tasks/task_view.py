# src/makecommand/tasks/task_view.py

"""
Derived (read-only) task view.

The two sources are never merged into a stored collection; this module computes the
visible list on every read:
- local tasks first, external appended,
- optional status filter,
- stable two-level sort: open before completed, then due date or priority.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from ..errors import ValidationFailed
from .task_models import Task, TaskStatus

FILTER_ALL = "all"
FILTER_VALUES = (FILTER_ALL, *(s.value for s in TaskStatus))


def _sort_key(task: Task, sort_by_date: bool) -> tuple:
    done = 1 if task.is_completed else 0
    if not sort_by_date:
        return (done, task.priority.rank)
    if task.due_date is not None:
        return (done, 0, task.due_date, 0)
    return (done, 1, date.max, task.priority.rank)


def normalize_filter(filter_status: str | None) -> str:
    value = (filter_status or FILTER_ALL).strip().lower()
    if value not in FILTER_VALUES:
        raise ValidationFailed(
            "filter_status",
            f"Unknown status filter: {value!r} (expected one of {', '.join(FILTER_VALUES)}).",
        )
    return value


def visible_tasks(
    local_tasks: Iterable[Task],
    external_tasks: Iterable[Task],
    filter_status: str = FILTER_ALL,
    sort_by_date: bool = False,
) -> list[Task]:
    wanted = normalize_filter(filter_status)

    merged: Sequence[Task] = [*local_tasks, *external_tasks]
    if wanted != FILTER_ALL:
        merged = [t for t in merged if t.status.value == wanted]

    # sorted() is stable: equal keys keep input order.
    return sorted(merged, key=lambda t: _sort_key(t, sort_by_date))
