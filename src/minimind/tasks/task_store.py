# src/minimind/tasks/task_store.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Generic, TypeVar

from ..core.ports import BlobStore
from .recurrence import next_occurrence
from .task_models import (
    Priority,
    Project,
    ReminderSettings,
    Repeat,
    Task,
    new_id,
    now_iso,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "@todo_app_tasks"
PROJECTS_KEY = "@todo_app_projects"
DARK_MODE_KEY = "@todo_app_dark_mode"
CUSTOM_TAGS_KEY = "@todo_app_custom_tags"
CUSTOM_CATEGORIES_KEY = "@todo_app_custom_categories"

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PersistError:
    key: str
    message: str


@dataclass(frozen=True, slots=True)
class StoreResult(Generic[T]):
    """
    Outcome of a mutating store call.

    The in-memory change has always been applied when a result is returned;
    errors only lists snapshot writes that failed.
    """

    value: T
    errors: tuple[PersistError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True, slots=True)
class Toggle:
    task: Task
    next_task: Task | None = None


PersistErrorHandler = Callable[[PersistError], None]


def _clean_tags(tags: Iterable[str] | None) -> tuple[str, ...]:
    out: list[str] = []
    for t in tags or ():
        s = str(t).strip()
        if s and s not in out:
            out.append(s)
    return tuple(out)


class TaskStore:
    """
    Single owner of tasks, projects and preferences.

    Every mutation:
    - runs synchronously to completion (no interleaving),
    - replaces the in-memory collections with new tuples (readers keep
      whatever snapshot they already hold),
    - writes the affected whole-collection snapshot(s) to the blob store.

    Snapshot writes are best-effort: a failing write is logged, handed to
    on_persist_error and reported in the returned StoreResult, but never
    raised and never rolls the in-memory state back.
    """

    def __init__(
        self,
        blobs: BlobStore,
        *,
        on_persist_error: PersistErrorHandler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._blobs = blobs
        self._on_persist_error = on_persist_error
        self._clock = clock or datetime.now

        self._tasks: tuple[Task, ...] = ()
        self._projects: tuple[Project, ...] = ()
        self._dark_mode = False
        self._custom_tags: tuple[str, ...] = ()
        self._custom_categories: tuple[str, ...] = ()

    # ---- snapshots ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._projects

    @property
    def dark_mode(self) -> bool:
        return self._dark_mode

    @property
    def custom_tags(self) -> tuple[str, ...]:
        return self._custom_tags

    @property
    def custom_categories(self) -> tuple[str, ...]:
        return self._custom_categories

    def get_task(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def get_project(self, project_id: str) -> Project | None:
        for p in self._projects:
            if p.id == project_id:
                return p
        return None

    def get_project_tasks(self, project_id: str) -> list[Task]:
        return [t for t in self._tasks if t.project_id == project_id]

    # ---- persistence ----

    def _write(self, key: str, payload: Any) -> PersistError | None:
        try:
            self._blobs.set_item(key, json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            logger.exception("Snapshot write failed key=%s", key)
            err = PersistError(key=key, message=str(e) or e.__class__.__name__)
            if self._on_persist_error is not None:
                try:
                    self._on_persist_error(err)
                except Exception:
                    logger.exception("on_persist_error handler failed key=%s", key)
            return err
        return None

    def _persist(self, *keys: str) -> tuple[PersistError, ...]:
        errors: list[PersistError] = []
        for key in keys:
            if key == TASKS_KEY:
                payload: Any = [t.to_dict() for t in self._tasks]
            elif key == PROJECTS_KEY:
                payload = [p.to_dict() for p in self._projects]
            elif key == DARK_MODE_KEY:
                payload = self._dark_mode
            elif key == CUSTOM_TAGS_KEY:
                payload = list(self._custom_tags)
            elif key == CUSTOM_CATEGORIES_KEY:
                payload = list(self._custom_categories)
            else:
                raise KeyError(key)
            err = self._write(key, payload)
            if err is not None:
                errors.append(err)
        return tuple(errors)

    def _read(self, key: str) -> Any | None:
        try:
            raw = self._blobs.get_item(key)
        except Exception:
            logger.exception("Snapshot read failed key=%s", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed snapshot key=%s", key)
            return None

    def initialize_store(self) -> bool:
        """
        Load all persisted snapshots and overwrite in-memory state.

        Absent keys leave the defaults in place (first run). Malformed blobs
        and malformed records are skipped with a warning.
        Returns True if at least one snapshot was found.
        """
        found = False

        raw_tasks = self._read(TASKS_KEY)
        if isinstance(raw_tasks, list):
            found = True
            tasks: list[Task] = []
            seen: set[str] = set()
            for rec in raw_tasks:
                if not isinstance(rec, dict):
                    continue
                try:
                    task = Task.from_dict(rec)
                except ValueError:
                    logger.warning("Skipping malformed task record: %r", rec)
                    continue
                if task.id in seen:
                    logger.warning("Skipping duplicate task id=%s", task.id)
                    continue
                seen.add(task.id)
                tasks.append(task)
            self._tasks = tuple(tasks)
            logger.info("Loaded %d tasks from storage", len(tasks))
        elif raw_tasks is not None:
            logger.warning("Ignoring tasks snapshot of type %s", type(raw_tasks).__name__)

        raw_projects = self._read(PROJECTS_KEY)
        if isinstance(raw_projects, list):
            found = True
            projects: list[Project] = []
            for rec in raw_projects:
                if not isinstance(rec, dict):
                    continue
                try:
                    projects.append(Project.from_dict(rec))
                except ValueError:
                    logger.warning("Skipping malformed project record: %r", rec)
            self._projects = tuple(projects)
            logger.info("Loaded %d projects from storage", len(projects))

        raw_dark = self._read(DARK_MODE_KEY)
        if isinstance(raw_dark, bool):
            found = True
            self._dark_mode = raw_dark

        raw_tags = self._read(CUSTOM_TAGS_KEY)
        if isinstance(raw_tags, list):
            found = True
            self._custom_tags = _clean_tags(raw_tags)

        raw_categories = self._read(CUSTOM_CATEGORIES_KEY)
        if isinstance(raw_categories, list):
            found = True
            self._custom_categories = _clean_tags(raw_categories)

        if not found:
            logger.info("No stored data found (first run)")
        return found

    # ---- tasks ----

    def _fresh_task_id(self) -> str:
        existing = {t.id for t in self._tasks}
        task_id = new_id()
        while task_id in existing:
            task_id = new_id()
        return task_id

    def add_task(
        self,
        title: str,
        *,
        due_date: str | None = None,
        description: str = "",
        category: str = "",
        tags: Iterable[str] | None = None,
        priority: Priority | str = Priority.MEDIUM,
        repeat: Repeat | None = None,
        project_id: str | None = None,
        notification: ReminderSettings | None = None,
        completed: bool = False,
    ) -> StoreResult[Task]:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")

        now = self._clock()
        task = Task(
            id=self._fresh_task_id(),
            title=title,
            description=description or "",
            due_date=due_date or now.date().isoformat(),
            completed=completed,
            created_at=now_iso(now),
            category=(category or "").strip(),
            tags=_clean_tags(tags),
            priority=Priority.parse(priority),
            repeat=repeat,
            project_id=project_id or None,
            notification=notification,
        )
        self._tasks = (*self._tasks, task)
        logger.debug("Task added id=%s due=%s repeat=%s", task.id, task.due_date, task.repeat)
        return StoreResult(task, self._persist(TASKS_KEY))

    def update_task(self, task: Task) -> StoreResult[Task | None]:
        """
        Replace the task with the same id. Unknown ids are a no-op.

        Title, category and tags are normalized the same way add_task does, so
        what is kept in memory is exactly what a reload produces.
        """
        title = task.title.strip()
        if not title:
            raise ValueError("title is required")
        task = replace(task, title=title, category=task.category.strip(), tags=_clean_tags(task.tags))

        if self.get_task(task.id) is None:
            logger.debug("update_task: unknown id=%s", task.id)
            return StoreResult(None)

        self._tasks = tuple(task if t.id == task.id else t for t in self._tasks)
        return StoreResult(task, self._persist(TASKS_KEY))

    def toggle_task_status(self, task_id: str) -> StoreResult[Toggle | None]:
        """
        Flip completion. Completing a recurring task also appends its next
        instance; both changes land in the same snapshot write.
        """
        current = self.get_task(task_id)
        if current is None:
            return StoreResult(None)

        completing = not current.completed
        spawned: Task | None = None
        if completing and current.is_recurring:
            spawned = next_occurrence(current, now=self._clock())

        toggled = replace(current, completed=completing)
        updated = [toggled if t.id == task_id else t for t in self._tasks]
        if spawned is not None:
            existing = {t.id for t in updated}
            while spawned.id in existing:
                spawned = replace(spawned, id=new_id())
            updated.append(spawned)
            logger.info("Recurring task %s completed; next instance %s due %s", task_id, spawned.id, spawned.due_date)

        self._tasks = tuple(updated)
        return StoreResult(Toggle(task=toggled, next_task=spawned), self._persist(TASKS_KEY))

    def delete_task(self, task_id: str) -> StoreResult[bool]:
        before = len(self._tasks)
        self._tasks = tuple(t for t in self._tasks if t.id != task_id)
        return StoreResult(len(self._tasks) != before, self._persist(TASKS_KEY))

    def delete_all_tasks(self) -> StoreResult[int]:
        """Drop every task. Irreversible; callers must confirm with the user first."""
        removed = len(self._tasks)
        self._tasks = ()
        logger.info("All tasks deleted (%d)", removed)
        return StoreResult(removed, self._persist(TASKS_KEY))

    # ---- projects ----

    def add_project(
        self,
        name: str,
        *,
        description: str = "",
        color: str = "#4A90E2",
    ) -> StoreResult[Project]:
        name = (name or "").strip()
        if not name:
            raise ValueError("project name is required")

        existing = {p.id for p in self._projects}
        project_id = new_id()
        while project_id in existing:
            project_id = new_id()

        project = Project(
            id=project_id,
            name=name,
            description=description or "",
            color=color or "#4A90E2",
            created_at=now_iso(self._clock()),
        )
        self._projects = (*self._projects, project)
        return StoreResult(project, self._persist(PROJECTS_KEY))

    def update_project(self, project: Project) -> StoreResult[Project | None]:
        name = project.name.strip()
        if not name:
            raise ValueError("project name is required")
        project = replace(project, name=name)
        if self.get_project(project.id) is None:
            return StoreResult(None)
        self._projects = tuple(project if p.id == project.id else p for p in self._projects)
        return StoreResult(project, self._persist(PROJECTS_KEY))

    def delete_project(self, project_id: str) -> StoreResult[int]:
        """
        Remove the project and detach its tasks (projectId cleared, tasks kept).
        Returns the number of detached tasks.
        """
        self._projects = tuple(p for p in self._projects if p.id != project_id)

        detached = 0
        tasks: list[Task] = []
        for t in self._tasks:
            if t.project_id == project_id:
                tasks.append(replace(t, project_id=None))
                detached += 1
            else:
                tasks.append(t)
        self._tasks = tuple(tasks)

        logger.debug("Project %s deleted, %d tasks detached", project_id, detached)
        return StoreResult(detached, self._persist(PROJECTS_KEY, TASKS_KEY))

    # ---- preferences ----

    def toggle_dark_mode(self) -> StoreResult[bool]:
        self._dark_mode = not self._dark_mode
        return StoreResult(self._dark_mode, self._persist(DARK_MODE_KEY))

    def add_custom_tag(self, tag: str) -> StoreResult[bool]:
        """Append a tag. Returns False (and writes nothing) if it is already known."""
        tag = (tag or "").strip()
        if not tag:
            raise ValueError("tag is required")
        if tag in self._custom_tags:
            return StoreResult(False)
        self._custom_tags = (*self._custom_tags, tag)
        return StoreResult(True, self._persist(CUSTOM_TAGS_KEY))

    def delete_custom_tag(self, tag: str) -> StoreResult[int]:
        """Forget a tag and strip it from every task. Returns the number of tasks touched."""
        self._custom_tags = tuple(t for t in self._custom_tags if t != tag)

        touched = 0
        tasks: list[Task] = []
        for t in self._tasks:
            if tag in t.tags:
                tasks.append(replace(t, tags=tuple(x for x in t.tags if x != tag)))
                touched += 1
            else:
                tasks.append(t)
        self._tasks = tuple(tasks)

        return StoreResult(touched, self._persist(CUSTOM_TAGS_KEY, TASKS_KEY))

    def add_custom_category(self, category: str) -> StoreResult[bool]:
        category = (category or "").strip()
        if not category:
            raise ValueError("category is required")
        if category in self._custom_categories:
            return StoreResult(False)
        self._custom_categories = (*self._custom_categories, category)
        return StoreResult(True, self._persist(CUSTOM_CATEGORIES_KEY))

    def delete_custom_category(self, category: str) -> StoreResult[int]:
        self._custom_categories = tuple(c for c in self._custom_categories if c != category)

        touched = 0
        tasks: list[Task] = []
        for t in self._tasks:
            if t.category == category:
                tasks.append(replace(t, category=""))
                touched += 1
            else:
                tasks.append(t)
        self._tasks = tuple(tasks)

        return StoreResult(touched, self._persist(CUSTOM_CATEGORIES_KEY, TASKS_KEY))
