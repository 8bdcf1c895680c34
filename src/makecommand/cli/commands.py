# src/makecommand/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Protocol, TypeVar, cast

from ..core.state import AppState
from ..errors import MakeCommandError, Unauthenticated, ValidationFailed, friendly_error_message
from ..records.record_models import (
    DEFAULT_PROJECT_COLOR,
    PROJECT_COLORS,
    CalendarEvent,
    EventType,
    Idea,
    Project,
    Thought,
    parse_tags,
)
from ..records.records_api import RecordsRepo, events_on, project_names, search
from ..tasks.task_models import Origin, Task, TaskDraft, TaskPriority, parse_date
from ..tasks.task_view import FILTER_VALUES

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class _HasId(Protocol):
    id: str


R = TypeVar("R", bound=_HasId)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        nparams = len(inspect.signature(handler).parameters)

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except Unauthenticated as e:
            logger.info("/%s: unauthenticated (%s)", name, e.service)
            if e.service == "backend":
                state.clear_auth()
            return friendly_error_message(e)
        except MakeCommandError as e:
            logger.info("/%s failed: %s", name, e)
            return friendly_error_message(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- task argument parsing ----


@dataclass(slots=True)
class TaskArgs:
    """
    Parsed `/add` and `/edit` arguments.

    Syntax: <title words> [p:<priority>] [due:<YYYY-MM-DD>|due:-] [project:<id>] [--google] [| <description>]
    """

    title: str = ""
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    clear_due: bool = False
    project_id: str | None = None
    google: bool = False


def parse_task_args(args: list[str]) -> TaskArgs:
    text = " ".join(args)
    head, sep, tail = text.partition("|")
    out = TaskArgs(description=tail.strip() if sep else None)

    words: list[str] = []
    for tok in head.split():
        low = tok.lower()
        if low == "--google":
            out.google = True
        elif low.startswith("p:"):
            value = low[2:]
            if value not in {p.value for p in TaskPriority}:
                raise ValidationFailed("priority", f"Unknown priority: {value!r}.")
            out.priority = TaskPriority(value)
        elif low.startswith("due:"):
            value = tok[4:]
            if value == "-":
                out.clear_due = True
                continue
            parsed = parse_date(value)
            if parsed is None:
                raise ValidationFailed("due_date", f"Bad date: {value!r} (expected YYYY-MM-DD).")
            out.due_date = parsed
        elif low.startswith("project:"):
            out.project_id = tok[8:]
        else:
            words.append(tok)

    out.title = " ".join(words).strip()
    return out


def _apply(draft: TaskDraft, parsed: TaskArgs) -> TaskDraft:
    changes: dict[str, Any] = {}
    if parsed.title:
        changes["title"] = parsed.title
    if parsed.description is not None:
        changes["description"] = parsed.description
    if parsed.priority is not None:
        changes["priority"] = parsed.priority
    if parsed.clear_due:
        changes["due_date"] = None
    elif parsed.due_date is not None:
        changes["due_date"] = parsed.due_date
    if parsed.project_id is not None:
        changes["project_id"] = parsed.project_id
    return replace(draft, **changes)


def _pick(state: AppState, args: list[str]) -> Task:
    """Resolve a 1-based index into the currently visible list."""
    if not args or not args[0].isdigit():
        raise ValidationFailed("index", "Give the task number from /tasks.")
    tasks = state.board.visible()
    idx = int(args[0])
    if idx < 1 or idx > len(tasks):
        raise ValidationFailed("index", f"No task #{idx} (showing {len(tasks)}).")
    return tasks[idx - 1]


def format_task(n: int, task: Task, projects: dict[str, str] | None = None) -> str:
    mark = "x" if task.is_completed else ("~" if task.status.value == "in_progress" else " ")
    src = "G" if task.origin == Origin.EXTERNAL else "L"
    parts = [f"{n:>3}. [{mark}] {task.title}", f"({task.priority.value})"]
    if task.due_date:
        parts.append(f"due {task.due_date.isoformat()}")
    if task.project_id and projects:
        parts.append(f"#{projects.get(task.project_id, task.project_id)}")
    parts.append(src)
    line = " ".join(parts)
    if task.description:
        line += f"\n       {task.description}"
    return line


def _drain(state: AppState, reply: str) -> str:
    notes = state.board.drain_notices()
    if not notes:
        return reply
    return "\n".join([*notes, reply]) if reply else "\n".join(notes)


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    board = state.board
    user = (state.auth.email or state.auth.user_id) if state.auth else "signed out"
    google = "connected" if board.google_connected else "not connected"
    return (
        "Status:\n"
        f"  Account: {user}\n"
        f"  Google Tasks: {google} (list: {board.selected_list_id or '-'})\n"
        f"  Filter: {board.filter_status}, sort: {'due date' if board.sort_by_date else 'priority'}"
    )


async def cmd_login(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /login <email> <password>"
    state.auth = await state.gateway.sign_in(args[0], args[1])
    state.board.set_user(state.auth.user_id)
    await state.board.refresh_local()
    return _drain(state, f"Signed in as {state.auth.email or state.auth.user_id}.")


async def cmd_signup(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /signup <email> <password>"
    state.auth = await state.gateway.sign_up(args[0], args[1])
    state.board.set_user(state.auth.user_id)
    await state.board.refresh_local()
    return _drain(state, f"Account created; signed in as {state.auth.email or state.auth.user_id}.")


async def cmd_logout(state: AppState, args: list[str]) -> str:
    try:
        await state.gateway.sign_out()
    finally:
        state.clear_auth()
    return "Signed out."


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks                  -> current filter/sort
    /tasks <status>         -> all | pending | in_progress | completed
    /tasks ... date         -> sort by due date (priority otherwise)
    """
    board = state.board
    for arg in args:
        low = arg.lower()
        if low in FILTER_VALUES:
            board.set_filter(low)
        elif low == "date":
            board.sort_by_date = True
        elif low == "priority":
            board.sort_by_date = False
        else:
            return f"Usage: /tasks [{'|'.join(FILTER_VALUES)}] [date|priority]"

    tasks = board.visible()
    if not tasks:
        return _drain(state, "No tasks found.")

    projects: dict[str, str] = {}
    repo = state.records()
    if repo is not None and any(t.project_id for t in tasks):
        try:
            projects = project_names(await repo.list_projects(by_name=True))
        except MakeCommandError:
            logger.debug("Project names unavailable.", exc_info=True)

    lines = [format_task(i, t, projects) for i, t in enumerate(tasks, start=1)]
    return _drain(state, "\n".join(lines))


async def cmd_add(state: AppState, args: list[str]) -> str:
    parsed = parse_task_args(args)
    draft = _apply(TaskDraft(title=""), parsed)
    origin = Origin.EXTERNAL if parsed.google else Origin.LOCAL
    ok = await state.board.create(draft, origin)
    return _drain(state, "Task created!" if ok else "")


async def cmd_edit(state: AppState, args: list[str]) -> str:
    task = _pick(state, args)
    parsed = parse_task_args(args[1:])
    ok = await state.board.update(task, _apply(TaskDraft.from_task(task), parsed))
    return _drain(state, "Task updated!" if ok else "")


async def cmd_done(state: AppState, args: list[str]) -> str:
    task = _pick(state, args)
    if task.status.value == "in_progress":
        return "Task is in progress; toggle only flips pending/completed."
    ok = await state.board.toggle_status(task)
    return _drain(state, ("Reopened: " if task.is_completed else "Done: ") + task.title if ok else "")


async def cmd_rm(state: AppState, args: list[str]) -> str:
    task = _pick(state, args)
    ok = await state.board.delete(task)
    return _drain(state, "Task deleted" if ok else "")


async def cmd_sync(state: AppState, args: list[str]) -> str:
    ok = await state.board.sync()
    return _drain(state, "Refreshed." if ok else "")


async def cmd_google(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /google connect          -> open the Google consent page
    /google callback <url>   -> finish sign-in with the redirected URL
    /google lists            -> show task lists
    /google use <list_id>    -> switch list
    /google disconnect       -> forget the token
    """
    board = state.board
    sub = args[0].lower() if args else ""

    if sub == "connect":
        url = board.connect_google()
        if url is None:
            return _drain(state, "")
        if emit is not None:
            emit("Opening Google sign-in in your browser...")
        return f"After approving, paste the redirected address with: /google callback <url>\n{url}"

    if sub == "callback":
        if len(args) < 2:
            return "Usage: /google callback <url>"
        ok = await board.complete_google_sign_in(args[1])
        return _drain(state, f"Google Tasks connected (list: {board.selected_list_id or '-'})." if ok else "")

    if sub == "lists":
        if not board.google_connected:
            return "Google Tasks is not connected. Use /google connect."
        await board.refresh_lists()
        lines = [
            f"{'*' if tl.id == board.selected_list_id else ' '} {tl.id}  {tl.title}"
            for tl in board.task_lists
        ]
        return _drain(state, "\n".join(lines) or "No task lists.")

    if sub == "use":
        if len(args) < 2:
            return "Usage: /google use <list_id>"
        ok = await board.select_list(args[1])
        return _drain(state, f"Using list {args[1]}." if ok else "")

    if sub == "disconnect":
        board.disconnect_google()
        return "Signed out from Google Tasks."

    return (
        "Google Tasks:\n"
        "  /google connect | callback <url> | lists | use <list_id> | disconnect"
    )


# ---- records ----
#
# Record commands share one shape:
#   /<kind> <fields>            create
#   /<kind> edit <n> <fields>   change only the fields given
#   /<kind> rm <n>              delete
# where <n> is the number shown by the matching list command.


def _repo(state: AppState) -> RecordsRepo:
    repo = state.records()
    if repo is None:
        raise Unauthenticated("Not signed in.")
    return repo


def _pieces(args: list[str]) -> list[str]:
    return [p.strip() for p in " ".join(args).split("|")]


def _piece(pieces: list[str], i: int) -> str | None:
    return pieces[i] if len(pieces) > i else None


def _nth(items: Sequence[R], raw: str | None, label: str) -> R:
    if raw is None or not raw.isdigit():
        raise ValidationFailed("index", f"Give the {label} number from the list.")
    idx = int(raw)
    if idx < 1 or idx > len(items):
        raise ValidationFailed("index", f"No {label} #{idx} (showing {len(items)}).")
    return items[idx - 1]


def _sub(args: list[str]) -> str:
    """`edit`/`rm` only count as subcommands when followed by a number."""
    if len(args) >= 2 and args[0].lower() in ("edit", "rm") and args[1].isdigit():
        return args[0].lower()
    return ""


def _numbered(all_items: Sequence[R], matches: Sequence[R]) -> list[tuple[int, R]]:
    # Numbers always refer to the unfiltered list, so edit/rm work after a search.
    ids = {m.id for m in matches}
    return [(n, item) for n, item in enumerate(all_items, start=1) if item.id in ids]


def _tag_suffix(tags: list[str]) -> str:
    return f" [{', '.join(tags)}]" if tags else ""


async def cmd_thoughts(state: AppState, args: list[str]) -> str:
    items = await _repo(state).list_thoughts()
    found = _numbered(items, search(items, " ".join(args)))
    if not found:
        return "No thoughts found."
    return "\n".join(f"{n:>3}. {t.title}{_tag_suffix(t.tags)}" for n, t in found)


async def cmd_thought(state: AppState, args: list[str]) -> str:
    """
    /thought <title> | <content> | <tag, tag>
    /thought edit <n> [title] [| content] [| tags]
    /thought rm <n>
    """
    repo = _repo(state)
    sub = _sub(args)
    if not sub:
        pieces = _pieces(args)
        await repo.save_thought(
            Thought(
                id="",
                title=pieces[0],
                content=_piece(pieces, 1) or "",
                tags=parse_tags(_piece(pieces, 2)),
            )
        )
        return "Thought captured!"

    thought = _nth(await repo.list_thoughts(), args[1], "thought")
    if sub == "rm":
        await repo.delete_thought(thought.id)
        return f"Thought deleted: {thought.title}"

    pieces = _pieces(args[2:])
    content = _piece(pieces, 1)
    tags = _piece(pieces, 2)
    await repo.save_thought(
        replace(
            thought,
            title=pieces[0] or thought.title,
            content=thought.content if content is None else content,
            tags=thought.tags if tags is None else parse_tags(tags),
        )
    )
    return "Thought updated!"


def _priority_token(tok: str) -> TaskPriority | None:
    low = tok.lower()
    if not low.startswith("p:"):
        return None
    value = low[2:]
    if value not in {p.value for p in TaskPriority}:
        raise ValidationFailed("priority", f"Unknown priority: {value!r}.")
    return TaskPriority(value)


async def cmd_ideas(state: AppState, args: list[str]) -> str:
    items = await _repo(state).list_ideas()
    found = _numbered(items, search(items, " ".join(args)))
    if not found:
        return "No ideas found."
    return "\n".join(
        f"{n:>3}. {i.title} ({i.priority.value}){_tag_suffix(i.tags)}" for n, i in found
    )


async def cmd_idea(state: AppState, args: list[str]) -> str:
    """
    /idea <title> [p:<priority>] | <description> | <tag, tag>
    /idea edit <n> [title] [p:..] [| description] [| tags]
    /idea rm <n>
    """
    repo = _repo(state)
    sub = _sub(args)
    ideas = await repo.list_ideas() if sub else []
    idea = _nth(ideas, args[1], "idea") if sub else None

    if sub == "rm":
        await repo.delete_idea(idea.id)
        return f"Idea deleted: {idea.title}"

    pieces = _pieces(args[2:] if sub else args)
    priority: TaskPriority | None = None
    words: list[str] = []
    for tok in pieces[0].split():
        parsed = _priority_token(tok)
        if parsed is not None:
            priority = parsed
        else:
            words.append(tok)
    title = " ".join(words)
    description = _piece(pieces, 1)
    tags = _piece(pieces, 2)

    if idea is None:
        await repo.save_idea(
            Idea(
                id="",
                title=title,
                description=description or "",
                tags=parse_tags(tags),
                priority=priority or TaskPriority.MEDIUM,
            )
        )
        return "Idea saved!"

    await repo.save_idea(
        replace(
            idea,
            title=title or idea.title,
            description=idea.description if description is None else description,
            tags=idea.tags if tags is None else parse_tags(tags),
            priority=priority or idea.priority,
        )
    )
    return "Idea updated!"


async def cmd_projects(state: AppState, args: list[str]) -> str:
    items = await _repo(state).list_projects()
    if not items:
        return "No projects yet."
    return "\n".join(f"{n:>3}. {p.name} {p.color} ({p.id})" for n, p in enumerate(items, start=1))


def _project_color(raw: str) -> str:
    """`3` picks from the palette (1-based), `#rrggbb` is taken as-is."""
    if raw.isdigit() and 1 <= int(raw) <= len(PROJECT_COLORS):
        return PROJECT_COLORS[int(raw) - 1]
    if len(raw) == 7 and raw.startswith("#") and all(c in "0123456789abcdefABCDEF" for c in raw[1:]):
        return raw.lower()
    raise ValidationFailed("color", f"Bad color: {raw!r} (palette 1-{len(PROJECT_COLORS)} or #rrggbb).")


async def cmd_project(state: AppState, args: list[str]) -> str:
    """
    /project <name> [color:<n>|color:#rrggbb] [| description]
    /project edit <n> [name] [color:..] [| description]
    /project rm <n>
    """
    repo = _repo(state)
    sub = _sub(args)
    project = _nth(await repo.list_projects(), args[1], "project") if sub else None

    if sub == "rm":
        await repo.delete_project(project.id)
        return f"Project deleted: {project.name}"

    head, sep, tail = " ".join(args[2:] if sub else args).partition("|")
    color: str | None = None
    words: list[str] = []
    for tok in head.split():
        if tok.lower().startswith("color:"):
            color = _project_color(tok[6:])
        else:
            words.append(tok)
    name = " ".join(words)

    if project is None:
        color = color or DEFAULT_PROJECT_COLOR
        await repo.save_project(Project(id="", name=name, description=tail.strip() or None, color=color))
        return f"Project created: {name} {color}"

    await repo.save_project(
        replace(
            project,
            name=name or project.name,
            color=color or project.color,
            description=(tail.strip() or None) if sep else project.description,
        )
    )
    return "Project updated!"


def _event_time(tok: str) -> str | None:
    try:
        return datetime.strptime(tok, "%H:%M").strftime("%H:%M")
    except ValueError:
        return None


def _event_day(raw: str | None) -> date:
    day = parse_date(raw) if raw else None
    if day is None:
        raise ValidationFailed("event_date", "Give the day as YYYY-MM-DD.")
    return day


@dataclass(slots=True)
class EventArgs:
    """Parsed `/event` fields: [HH:MM|allday] [type:<type>] [date:<YYYY-MM-DD>] <title> [| description]"""

    title: str = ""
    description: str | None = None
    event_time: str | None = None
    all_day: bool = False
    event_type: EventType | None = None
    event_date: date | None = None


def parse_event_args(args: list[str]) -> EventArgs:
    head, sep, tail = " ".join(args).partition("|")
    out = EventArgs(description=tail.strip() if sep else None)
    words: list[str] = []
    for tok in head.split():
        low = tok.lower()
        if low == "allday":
            out.all_day = True
        elif low.startswith("type:"):
            value = low[5:]
            if value not in {t.value for t in EventType}:
                raise ValidationFailed("event_type", f"Unknown event type: {value!r}.")
            out.event_type = EventType(value)
        elif low.startswith("date:"):
            out.event_date = _event_day(tok[5:])
        elif not words and _event_time(tok) is not None:
            out.event_time = _event_time(tok)
        else:
            words.append(tok)
    out.title = " ".join(words)
    return out


def _format_event(n: int, e: CalendarEvent) -> str:
    when = "all day" if e.all_day else (e.event_time or "--:--")
    line = f"{n:>3}. {when} {e.title} ({e.event_type.value})"
    if e.description:
        line += f"\n       {e.description}"
    return line


async def cmd_events(state: AppState, args: list[str]) -> str:
    repo = _repo(state)
    day = parse_date(args[0]) if args else date.today()
    if day is None:
        return "Usage: /events [YYYY-MM-DD]"
    items = events_on(await repo.list_events(), day)
    if not items:
        return f"No events on {day.isoformat()}."
    return "\n".join(_format_event(n, e) for n, e in enumerate(items, start=1))


async def cmd_event(state: AppState, args: list[str]) -> str:
    """
    /event <YYYY-MM-DD> [HH:MM|allday] [type:<type>] <title> [| description]
    /event edit <YYYY-MM-DD> <n> [HH:MM|allday] [type:..] [date:..] [title] [| description]
    /event rm <YYYY-MM-DD> <n>
    """
    repo = _repo(state)
    sub = args[0].lower() if args and args[0].lower() in ("edit", "rm") else ""

    if not sub:
        day = _event_day(args[0] if args else None)
        parsed = parse_event_args(args[1:])
        await repo.save_event(
            CalendarEvent(
                id="",
                title=parsed.title,
                event_date=day,
                event_type=parsed.event_type or EventType.PERSONAL,
                description=parsed.description or None,
                event_time=parsed.event_time,
                all_day=parsed.all_day,
            )
        )
        return f"Event added on {day.isoformat()}."

    day = _event_day(args[1] if len(args) > 1 else None)
    event = _nth(events_on(await repo.list_events(), day), args[2] if len(args) > 2 else None, "event")

    if sub == "rm":
        await repo.delete_event(event.id)
        return f"Event deleted: {event.title}"

    parsed = parse_event_args(args[3:])
    all_day = parsed.all_day or (event.all_day and parsed.event_time is None)
    await repo.save_event(
        replace(
            event,
            title=parsed.title or event.title,
            event_date=parsed.event_date or event.event_date,
            event_type=parsed.event_type or event.event_type,
            description=(parsed.description or None) if parsed.description is not None else event.description,
            event_time=parsed.event_time or event.event_time,
            all_day=all_day,
        )
    )
    return "Event updated!"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show account, Google Tasks and view settings.")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out of the app backend.")
registry.register(
    "tasks", cmd_tasks, help_text="List tasks: /tasks [all|pending|in_progress|completed] [date|priority]."
)
registry.register(
    "add",
    cmd_add,
    help_text="Add task: /add <title> [p:urgent] [due:YYYY-MM-DD] [project:<id>] [--google] [| description].",
)
registry.register("edit", cmd_edit, help_text="Edit task: /edit <n> [title] [p:..] [due:..|due:-] [| description].")
registry.register("done", cmd_done, help_text="Toggle completed: /done <n>.", aliases=["toggle"])
registry.register("rm", cmd_rm, help_text="Delete task: /rm <n>.", aliases=["del"])
registry.register("sync", cmd_sync, help_text="Re-fetch local and Google tasks.")
registry.register("google", cmd_google, help_text="Google Tasks: /google connect | callback | lists | use | disconnect.")
registry.register("thoughts", cmd_thoughts, help_text="List/search thoughts: /thoughts [term].")
registry.register(
    "thought",
    cmd_thought,
    help_text="Capture: /thought <title> | <content> | <tags>; also edit <n> ... / rm <n>.",
)
registry.register("ideas", cmd_ideas, help_text="List/search ideas: /ideas [term].")
registry.register(
    "idea",
    cmd_idea,
    help_text="Save idea: /idea <title> [p:high] | <description> | <tags>; also edit <n> ... / rm <n>.",
)
registry.register("projects", cmd_projects, help_text="List projects.")
registry.register(
    "project",
    cmd_project,
    help_text="Create project: /project <name> [color:<n>|color:#hex] [| description]; also edit <n> ... / rm <n>.",
)
registry.register("events", cmd_events, help_text="Calendar events on a day: /events [YYYY-MM-DD].")
registry.register(
    "event",
    cmd_event,
    help_text="Add event: /event <YYYY-MM-DD> [HH:MM|allday] [type:meeting] <title> [| description]; "
    "also edit|rm <YYYY-MM-DD> <n>.",
)
