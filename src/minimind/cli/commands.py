# src/minimind/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, cast

from ..core.state import AppState
from ..llm.offline import OfflineLLMClient
from ..tasks.agenda import agenda_for_day, upcoming_dates
from ..tasks.recurrence import next_occurrence, parse_day
from ..tasks.reminders import ReminderHandle, reminder_fire_time, schedule_task_reminder
from ..tasks.task_models import Priority, Project, ReminderSettings, Repeat, RepeatType, Task
from ..tasks.task_store import StoreResult
from ..voice.speech_processor import add_voice_tasks

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID_LEN = 6

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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

    def handle(
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

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except ValueError as e:
            # validation errors are shown inline
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def short_id(item_id: str) -> str:
    return item_id[-SHORT_ID_LEN:]


def _persist_note(res: StoreResult[Any]) -> str:
    if res.ok:
        return ""
    keys = ", ".join(e.key for e in res.errors)
    return f"\n(warning: changes are kept in memory but could not be saved: {keys})"


def _resolve_task(state: AppState, ref: str) -> Task:
    """Find a task by full id or by a unique id suffix (as shown in listings)."""
    ref = ref.strip()
    task = state.store.get_task(ref)
    if task is not None:
        return task
    matches = [t for t in state.store.tasks if t.id.endswith(ref)]
    if not matches:
        raise ValueError(f"no task with id {ref}")
    if len(matches) > 1:
        raise ValueError(f"id {ref} is ambiguous ({len(matches)} tasks)")
    return matches[0]


def _resolve_project(state: AppState, ref: str) -> Project:
    """Same rule as tasks: full id, or a suffix matching exactly one project."""
    ref = ref.strip()
    project = state.store.get_project(ref)
    if project is not None:
        return project
    matches = [p for p in state.store.projects if p.id.endswith(ref)]
    if not matches:
        raise ValueError(f"no project with id {ref}")
    if len(matches) > 1:
        raise ValueError(f"id {ref} is ambiguous ({len(matches)} projects)")
    return matches[0]


def _parse_day_arg(raw: str, today: date) -> date:
    word = raw.strip().lower()
    if word in ("", "today"):
        return today
    if word == "tomorrow":
        return today + timedelta(days=1)
    if word == "yesterday":
        return today - timedelta(days=1)
    day = parse_day(raw)
    if day is None:
        raise ValueError(f"invalid date: {raw} (use YYYY-MM-DD, today or tomorrow)")
    return day


def _parse_repeat(token: str) -> Repeat | None:
    """~daily | ~weekly:2 | ~monthly:3 | ~none (no rule)"""
    body = token[1:]
    kind, _, interval = body.partition(":")
    if kind.strip().lower() == "none":
        return None
    repeat_type = RepeatType.parse(kind)
    if repeat_type is RepeatType.NONE:
        raise ValueError(f"unknown repeat: {token} (use ~daily, ~weekly or ~monthly[:N])")
    try:
        n = int(interval) if interval else 1
    except ValueError:
        raise ValueError(f"invalid repeat interval: {token}") from None
    if n < 1:
        raise ValueError("repeat interval must be at least 1")
    return Repeat(type=repeat_type, interval=n)


def format_task(state: AppState, task: Task) -> str:
    mark = "x" if task.completed else " "
    parts = [f"[{mark}] {short_id(task.id)} {task.title}"]
    if task.priority is not Priority.MEDIUM:
        parts.append(f"!{task.priority.value}")
    if task.category:
        parts.append(f"%{task.category}")
    parts.extend(f"#{t}" for t in task.tags)
    if task.repeat is not None and task.repeat.is_recurring:
        rep = f"~{task.repeat.type.value}"
        if task.repeat.interval > 1:
            rep += f":{task.repeat.interval}"
        if task.repeat.end_date:
            rep += f" until {task.repeat.end_date[:10]}"
        parts.append(rep)
    parts.append(f"@{task.due_date[:16]}")
    if task.project_id:
        project = state.store.get_project(task.project_id)
        parts.append(f"[{project.name if project else '?'}]")
    return " ".join(parts)


def _parse_project_tokens(args: list[str]) -> tuple[list[str], str | None, str | None]:
    """name words, color=#RRGGBB, -- description"""
    name: list[str] = []
    color: str | None = None
    description: str | None = None
    for i, tok in enumerate(args):
        if tok == "--":
            description = " ".join(args[i + 1 :]).strip()
            break
        if tok.lower().startswith("color="):
            color = tok[6:]
            if not _COLOR_RE.match(color):
                raise ValueError(f"invalid color: {color} (use #RRGGBB)")
        else:
            name.append(tok)
    return name, color, description


def _arm_reminder(state: AppState, task: Task) -> ReminderHandle | None:
    """(Re)arm the reminder of a task; a fire time already in the past is not armed."""
    fire_at = reminder_fire_time(task)
    if fire_at is None or fire_at <= datetime.now():
        state.reminders.cancel(task.id)
        return None
    return schedule_task_reminder(state.reminders, task)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.store
    open_count = sum(1 for t in store.tasks if not t.completed)
    voice = "offline (raw text only)" if isinstance(state.llm, OfflineLLMClient) else "LLM"
    lines = [
        "Status:",
        f"  Tasks: {len(store.tasks)} ({open_count} open)",
        f"  Projects: {len(store.projects)}",
        f"  Tags: {', '.join(store.custom_tags) or '-'}",
        f"  Categories: {', '.join(store.custom_categories) or '-'}",
        f"  Dark mode: {'ON' if store.dark_mode else 'OFF'}",
        f"  Voice capture: {voice}",
        f"  Pending reminders: {len(state.reminders.pending())}",
    ]
    if state.persist_errors:
        lines.append(f"  Save failures since last status: {len(state.persist_errors)}")
        for err in state.persist_errors[-5:]:
            lines.append(f"    {err.key}: {err.message}")
        state.persist_errors.clear()
    return "\n".join(lines)


@dataclass(slots=True)
class _TaskTokens:
    """What a /add or /edit line asked for; None means "not given"."""

    title_words: list[str] = field(default_factory=list)
    description: str | None = None
    priority: Priority | None = None
    tags_add: list[str] = field(default_factory=list)
    tags_remove: list[str] = field(default_factory=list)
    category: str | None = None
    due: date | None = None
    repeat_given: bool = False
    repeat: Repeat | None = None
    until: str | None = None


def _parse_task_tokens(args: list[str], today: date) -> _TaskTokens:
    """
    Token grammar shared by /add and /edit:

      words            title
      !high            priority (low|medium|high)
      #tag / -#tag     add / remove a tag
      %Work / %-       set / clear the category
      @2024-03-01      due date (also @today, @tomorrow)
      ~weekly:2        repeat rule, ~none clears it
      until=DATE       repeat end date
      -- text...       description (everything after --)
    """
    out = _TaskTokens()
    for i, tok in enumerate(args):
        if tok == "--":
            out.description = " ".join(args[i + 1 :]).strip()
            break
        if tok.startswith("!") and len(tok) > 1:
            out.priority = Priority.parse(tok[1:])
        elif tok.startswith("-#") and len(tok) > 2:
            out.tags_remove.append(tok[2:])
        elif tok.startswith("#") and len(tok) > 1:
            out.tags_add.append(tok[1:])
        elif tok == "%-":
            out.category = ""
        elif tok.startswith("%") and len(tok) > 1:
            out.category = tok[1:]
        elif tok.startswith("@") and len(tok) > 1:
            out.due = _parse_day_arg(tok[1:], today)
        elif tok.startswith("~") and len(tok) > 1:
            out.repeat_given = True
            out.repeat = _parse_repeat(tok)
        elif tok.startswith("until=") and len(tok) > 6:
            out.until = _parse_day_arg(tok[6:], today).isoformat()
        else:
            out.title_words.append(tok)
    return out


def _with_until(repeat: Repeat | None, until: str | None) -> Repeat | None:
    if until is None:
        return repeat
    if repeat is None:
        raise ValueError("until= needs a repeat rule (~daily, ~weekly, ~monthly)")
    return replace(repeat, end_date=until)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Buy milk !high #shop %Personal @2024-03-01 ~weekly:2 until=2024-06-01 -- oat milk
    """
    today = date.today()
    tokens = _parse_task_tokens(args, today)

    res = state.store.add_task(
        " ".join(tokens.title_words),
        due_date=(tokens.due or today).isoformat(),
        description=tokens.description or "",
        category=tokens.category or "",
        tags=[t for t in tokens.tags_add if t not in tokens.tags_remove],
        priority=tokens.priority or Priority.MEDIUM,
        repeat=_with_until(tokens.repeat, tokens.until),
    )
    return f"Added: {format_task(state, res.value)}{_persist_note(res)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit <id> [new title] [!prio] [#tag] [-#tag] [%cat|%-] [@date] [~rule|~none] [until=date] [-- description]

    Only the parts given change; the rest of the task is kept.
    """
    if len(args) < 2:
        return "Usage: /edit <id> [title] [!prio] [#tag] [-#tag] [%cat] [@date] [~rule] [until=date] [-- text]"
    task = _resolve_task(state, args[0])
    tokens = _parse_task_tokens(args[1:], date.today())

    changes: dict[str, Any] = {}
    if tokens.title_words:
        changes["title"] = " ".join(tokens.title_words)
    if tokens.description is not None:
        changes["description"] = tokens.description
    if tokens.priority is not None:
        changes["priority"] = tokens.priority
    if tokens.category is not None:
        changes["category"] = tokens.category
    if tokens.due is not None:
        changes["due_date"] = tokens.due.isoformat()
    if tokens.tags_add or tokens.tags_remove:
        tags = [t for t in (*task.tags, *tokens.tags_add) if t not in tokens.tags_remove]
        changes["tags"] = tuple(tags)
    if tokens.repeat_given or tokens.until is not None:
        repeat = tokens.repeat if tokens.repeat_given else task.repeat
        if repeat is not None and not repeat.is_recurring:
            repeat = None
        changes["repeat"] = _with_until(repeat, tokens.until)

    res = state.store.update_task(replace(task, **changes))
    updated = res.value or task
    _arm_reminder(state, updated)
    return f"Updated: {format_task(state, updated)}{_persist_note(res)}"


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <id>"
    task = _resolve_task(state, args[0])

    lines = [
        task.title,
        f"  id: {task.id}",
        f"  status: {'done' if task.completed else 'open'}",
        f"  due: {task.due_date}",
        f"  priority: {task.priority.value}",
        f"  category: {task.category or '-'}",
        f"  tags: {', '.join(task.tags) or '-'}",
    ]
    repeat = task.repeat
    if repeat is not None and repeat.is_recurring:
        rule = f"every {repeat.interval} " if repeat.interval > 1 else "every "
        rule += {"daily": "day", "weekly": "week", "monthly": "month"}[repeat.type.value]
        rule += "s" if repeat.interval > 1 else ""
        if repeat.end_date:
            rule += f" until {repeat.end_date[:10]}"
        lines.append(f"  repeat: {rule}")
        if not task.completed:
            nxt = next_occurrence(task)
            lines.append(f"  next: {nxt.due_date if nxt else '-'}")
    if task.project_id:
        project = state.store.get_project(task.project_id)
        lines.append(f"  project: {project.name if project else '?'}")
    fire_at = reminder_fire_time(task)
    if fire_at is not None:
        lines.append(f"  reminder: {fire_at.strftime('%Y-%m-%d %H:%M')}")
    lines.append(f"  created: {task.created_at}")
    if task.description:
        lines.append("")
        lines.append(f"  {task.description}")
    return "\n".join(lines)


def cmd_list(state: AppState, args: list[str]) -> str:
    day = _parse_day_arg(args[0] if args else "today", date.today())
    agenda = agenda_for_day(state.store.tasks, day)
    header = f"{day.strftime('%A, %b %d')}:"
    if agenda.is_empty:
        return f"{header}\n  No tasks scheduled for this day."
    lines = [header]
    for title, items in agenda.sections():
        lines.append(f"  {title}:")
        lines.extend(f"    {format_task(state, t)}" for t in items)
    return "\n".join(lines)


def cmd_upcoming(state: AppState, args: list[str]) -> str:
    try:
        days = int(args[0]) if args else 7
    except ValueError:
        raise ValueError("usage: /upcoming [days]") from None

    lines = ["Upcoming:"]
    for day in upcoming_dates(date.today(), max(1, min(days, 60))):
        agenda = agenda_for_day(state.store.tasks, day)
        open_items = agenda.tasks + agenda.repeating
        if not open_items:
            continue
        lines.append(f"  {day.strftime('%a %b %d')}:")
        lines.extend(f"    {format_task(state, t)}" for t in open_items)
    if len(lines) == 1:
        return "Nothing scheduled."
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <id>"
    task = _resolve_task(state, args[0])
    res = state.store.toggle_task_status(task.id)
    toggle = res.value
    if toggle is None:
        return f"No task with id {args[0]}."

    _arm_reminder(state, toggle.task)
    msg = f"{'Completed' if toggle.task.completed else 'Reopened'}: {format_task(state, toggle.task)}"
    if toggle.next_task is not None:
        _arm_reminder(state, toggle.next_task)
        msg += f"\nNext: {format_task(state, toggle.next_task)}"
    return msg + _persist_note(res)


def cmd_del(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <id>"
    task = _resolve_task(state, args[0])
    res = state.store.delete_task(task.id)
    state.reminders.cancel(task.id)
    return f"Deleted: {task.title}{_persist_note(res)}"


def cmd_clear(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() != "yes":
        return f"This deletes all {len(state.store.tasks)} tasks and cannot be undone. Type /clear yes to confirm."
    ids = [t.id for t in state.store.tasks]
    res = state.store.delete_all_tasks()
    for task_id in ids:
        state.reminders.cancel(task_id)
    return f"Deleted {res.value} tasks.{_persist_note(res)}"


def cmd_project(state: AppState, args: list[str]) -> str:
    """
    /project add <name>                                -> create
    /project list                                      -> list projects with open task counts
    /project edit <id> [name] [color=#RRGGBB] [-- text] -> rename / recolor / describe
    /project del <id>                                  -> delete (tasks are kept, just unassigned)
    /project tasks <id>                                -> tasks of a project
    """
    usage = "Usage: /project add <name> | list | edit <id> ... | del <id> | tasks <id>"
    if not args:
        return usage
    sub = args[0].lower()
    store = state.store

    if sub == "add":
        name, color, description = _parse_project_tokens(args[1:])
        res = store.add_project(
            " ".join(name),
            description=description or "",
            color=color or "#4A90E2",
        )
        return f"Project created: {short_id(res.value.id)} {res.value.name}{_persist_note(res)}"

    if sub == "list":
        if not store.projects:
            return "No projects yet."
        lines = ["Projects:"]
        for p in store.projects:
            tasks = store.get_project_tasks(p.id)
            open_count = sum(1 for t in tasks if not t.completed)
            lines.append(f"  {short_id(p.id)} {p.name} ({open_count}/{len(tasks)} open)")
        return "\n".join(lines)

    if sub == "edit" and len(args) > 2:
        project = _resolve_project(state, args[1])
        name, color, description = _parse_project_tokens(args[2:])
        changes: dict[str, Any] = {}
        if name:
            changes["name"] = " ".join(name)
        if color is not None:
            changes["color"] = color
        if description is not None:
            changes["description"] = description
        res = store.update_project(replace(project, **changes))
        updated = res.value or project
        return f"Project updated: {short_id(updated.id)} {updated.name} {updated.color}{_persist_note(res)}"

    if sub in ("del", "delete") and len(args) > 1:
        project = _resolve_project(state, args[1])
        res = store.delete_project(project.id)
        return f"Project deleted: {project.name} ({res.value} tasks unassigned){_persist_note(res)}"

    if sub == "tasks" and len(args) > 1:
        project = _resolve_project(state, args[1])
        tasks = store.get_project_tasks(project.id)
        if not tasks:
            return "No tasks in this project."
        return "\n".join(format_task(state, t) for t in tasks)

    return usage


def cmd_assign(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /assign <task_id> <project_id|none>"
    task = _resolve_task(state, args[0])
    project_id = None if args[1].lower() == "none" else _resolve_project(state, args[1]).id
    res = state.store.update_task(replace(task, project_id=project_id))
    return f"Updated: {format_task(state, res.value or task)}{_persist_note(res)}"


def _cmd_labels(state: AppState, args: list[str], *, kind: str) -> str:
    store = state.store
    if kind == "tag":
        command, plural = "tag", "Tags"
        known, add, delete = store.custom_tags, store.add_custom_tag, store.delete_custom_tag
    else:
        command, plural = "cat", "Categories"
        known, add, delete = store.custom_categories, store.add_custom_category, store.delete_custom_category

    usage = f"Usage: /{command} add <name> | del <name> | list"
    if not args or args[0].lower() == "list":
        return f"{plural}: {', '.join(known) or '-'}"

    sub = args[0].lower()
    name = " ".join(args[1:]).strip()
    if sub == "add":
        res = add(name)
        if not res.value:
            return f"{kind.capitalize()} '{name}' already exists."
        return f"{kind.capitalize()} added: {name}{_persist_note(res)}"
    if sub in ("del", "delete"):
        if name not in known:
            return f"Unknown {kind}: {name}"
        res = delete(name)
        return f"{kind.capitalize()} deleted: {name} ({res.value} tasks updated){_persist_note(res)}"
    return usage


def cmd_tag(state: AppState, args: list[str]) -> str:
    return _cmd_labels(state, args, kind="tag")


def cmd_cat(state: AppState, args: list[str]) -> str:
    return _cmd_labels(state, args, kind="category")


def cmd_dark(state: AppState, args: list[str]) -> str:
    res = state.store.toggle_dark_mode()
    return f"Dark mode {'ON' if res.value else 'OFF'}.{_persist_note(res)}"


def cmd_voice(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /voice <what you said>"

    if emit:
        with contextlib.suppress(Exception):
            emit("[VOICE] Processing...")

    created = add_voice_tasks(state.store, state.llm, text)
    lines = [f"Created {len(created)} task(s):"]
    lines.extend(f"  {format_task(state, t)}" for t in created)
    return "\n".join(lines)


def cmd_remind(state: AppState, args: list[str]) -> str:
    """
    /remind <id> <minutes_before> [HH:MM]  -> enable a reminder
    /remind <id> off                       -> disable it
    """
    if len(args) < 2:
        return "Usage: /remind <task_id> <minutes_before> [HH:MM] | /remind <task_id> off"
    task = _resolve_task(state, args[0])

    if args[1].lower() == "off":
        settings = ReminderSettings(enabled=False)
    else:
        try:
            minutes = int(args[1])
        except ValueError:
            raise ValueError("minutes_before must be a number") from None
        at = args[2] if len(args) > 2 else ""
        settings = ReminderSettings(enabled=True, time=at, before_minutes=max(0, minutes))

    res = state.store.update_task(replace(task, notification=settings))
    updated = res.value or task
    handle = _arm_reminder(state, updated)
    if handle is None:
        fire_at = reminder_fire_time(updated)
        if fire_at is not None:
            when = fire_at.strftime("%Y-%m-%d %H:%M")
            return f"Reminder saved, but {when} has already passed; nothing will fire: {updated.title}{_persist_note(res)}"
        return f"Reminder off for: {updated.title}{_persist_note(res)}"
    when = handle.reminder.fire_at.strftime("%Y-%m-%d %H:%M")
    return f"Reminder set for {when}: {updated.title}{_persist_note(res)}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store and preference status.")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <title> [!high] [#tag] [%category] [@date] [~weekly:2] [until=date] [-- description].",
)
registry.register(
    "edit",
    cmd_edit,
    help_text="Edit a task: /edit <id> [title] [!prio] [#tag] [-#tag] [%cat|%-] [@date] [~rule|~none] [until=date] [-- text].",
)
registry.register("show", cmd_show, help_text="Task details: /show <id>.", aliases=["info"])
registry.register("list", cmd_list, help_text="Tasks of a day: /list [today|tomorrow|YYYY-MM-DD].", aliases=["ls"])
registry.register("upcoming", cmd_upcoming, help_text="Open tasks of the next days: /upcoming [days].")
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.")
registry.register("del", cmd_del, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Delete ALL tasks: /clear yes.")
registry.register("project", cmd_project, help_text="Projects: /project add|list|edit|del|tasks.")
registry.register("assign", cmd_assign, help_text="Move a task to a project: /assign <task> <project|none>.")
registry.register("tag", cmd_tag, help_text="Custom tags: /tag add|del|list.")
registry.register("cat", cmd_cat, help_text="Custom categories: /cat add|del|list.")
registry.register("dark", cmd_dark, help_text="Toggle dark mode.")
registry.register("voice", cmd_voice, help_text="Create tasks from spoken text: /voice <text>.")
registry.register("remind", cmd_remind, help_text="Reminder: /remind <id> <minutes_before> [HH:MM] | off.")
