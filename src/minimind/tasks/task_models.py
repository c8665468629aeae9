# src/minimind/tasks/task_models.py

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        if isinstance(raw, Priority):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


# high first when sorting a day's list
PRIORITY_ORDER: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class RepeatType(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, raw: Any) -> RepeatType:
        if isinstance(raw, RepeatType):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.NONE


def _clamp_interval(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return 1
    return max(1, value)


@dataclass(frozen=True, slots=True)
class Repeat:
    """
    Recurrence rule.

    interval is clamped to >= 1 on construction; a zero interval would make
    occurrence projection meaningless.
    """

    type: RepeatType = RepeatType.NONE
    interval: int = 1
    end_date: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", RepeatType.parse(self.type))
        object.__setattr__(self, "interval", _clamp_interval(self.interval))
        if not self.end_date:
            object.__setattr__(self, "end_date", None)

    @property
    def is_recurring(self) -> bool:
        return self.type is not RepeatType.NONE

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value, "interval": self.interval}
        if self.end_date:
            out["endDate"] = self.end_date
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Repeat | None:
        if not isinstance(raw, dict):
            return None
        return cls(
            type=RepeatType.parse(raw.get("type")),
            interval=raw.get("interval", 1),
            end_date=raw.get("endDate") or None,
        )


@dataclass(frozen=True, slots=True)
class ReminderSettings:
    enabled: bool = False
    time: str = ""
    before_minutes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"enabled": self.enabled, "time": self.time}
        if self.before_minutes is not None:
            out["beforeMinutes"] = self.before_minutes
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> ReminderSettings | None:
        if not isinstance(raw, dict):
            return None
        before = raw.get("beforeMinutes")
        try:
            before_minutes = int(before) if before is not None else None
        except (TypeError, ValueError):
            before_minutes = None
        return cls(
            enabled=bool(raw.get("enabled", False)),
            time=str(raw.get("time") or ""),
            before_minutes=before_minutes,
        )


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    due_date: str
    created_at: str

    description: str = ""
    completed: bool = False
    category: str = ""
    tags: tuple[str, ...] = ()
    priority: Priority = Priority.MEDIUM

    repeat: Repeat | None = None
    project_id: str | None = None
    notification: ReminderSettings | None = None

    @property
    def is_recurring(self) -> bool:
        return self.repeat is not None and self.repeat.is_recurring

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date,
            "completed": self.completed,
            "createdAt": self.created_at,
            "category": self.category,
            "tags": list(self.tags),
            "priority": self.priority.value,
        }
        if self.repeat is not None:
            out["repeat"] = self.repeat.to_dict()
        if self.project_id:
            out["projectId"] = self.project_id
        if self.notification is not None:
            out["notification"] = self.notification.to_dict()
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        """
        Build a Task from a persisted record.

        Raises ValueError when the record has no id or title; every other
        field falls back to its default.
        """
        task_id = str(raw.get("id") or "").strip()
        title = str(raw.get("title") or "").strip()
        if not task_id or not title:
            raise ValueError("task record requires id and title")

        tags_raw = raw.get("tags") or []
        tags = tuple(str(t) for t in tags_raw) if isinstance(tags_raw, list) else ()
        # only a real JSON boolean counts; "false" or 1 do not mark a task done
        completed = raw.get("completed")
        project_id = raw.get("projectId")

        return cls(
            id=task_id,
            title=title,
            description=str(raw.get("description") or ""),
            due_date=str(raw.get("dueDate") or ""),
            completed=completed is True,
            created_at=str(raw.get("createdAt") or ""),
            category=str(raw.get("category") or ""),
            tags=tags,
            priority=Priority.parse(raw.get("priority")),
            repeat=Repeat.from_dict(raw.get("repeat")),
            project_id=str(project_id) if project_id not in (None, "") else None,
            notification=ReminderSettings.from_dict(raw.get("notification")),
        )


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    created_at: str
    description: str = ""
    color: str = "#4A90E2"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Project:
        project_id = str(raw.get("id") or "").strip()
        name = str(raw.get("name") or "").strip()
        if not project_id or not name:
            raise ValueError("project record requires id and name")
        return cls(
            id=project_id,
            name=name,
            description=str(raw.get("description") or ""),
            color=str(raw.get("color") or "#4A90E2"),
            created_at=str(raw.get("createdAt") or ""),
        )


@dataclass(slots=True)
class _IdGenerator:
    """Millisecond timestamp ids, bumped when two calls land in the same tick."""

    _last: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def next(self) -> str:
        with self._lock:
            candidate = time.time_ns() // 1_000_000
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


_ids = _IdGenerator()


def new_id() -> str:
    return _ids.next()


def now_iso(now: datetime | None = None) -> str:
    """Local wall-clock timestamp in the persisted createdAt format."""
    dt = now if now is not None else datetime.now()
    return dt.strftime("%Y-%m-%dT%H:%M:%S")
