# src/minimind/tasks/reminders.py

from __future__ import annotations

"""
Reminder scheduler.

A small in-process replacement for the OS notification scheduler:
- schedule(id, title, body, fire_at) registers a one-shot reminder and
  returns a cancellable handle,
- run(notifier) is a polling loop that fires due reminders through an
  injected Notifier port and forgets them.

Rescheduling the same id replaces the previous reminder.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.ports import Notifier
from .task_models import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Reminder:
    id: str
    title: str
    body: str
    fire_at: datetime


class ReminderHandle:
    """Returned by schedule(); cancel() is idempotent."""

    __slots__ = ("_scheduler", "reminder")

    def __init__(self, scheduler: ReminderScheduler, reminder: Reminder) -> None:
        self._scheduler = scheduler
        self.reminder = reminder

    @property
    def id(self) -> str:
        return self.reminder.id

    def cancel(self) -> bool:
        return self._scheduler.cancel(self.reminder.id, only=self.reminder)


class ReminderScheduler:
    """
    Thread-safety:
    - schedule/cancel are called from the console thread while run() polls on
      an asyncio loop in another thread; a lock guards the pending map.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or datetime.now
        self._pending: dict[str, Reminder] = {}
        self._lock = threading.Lock()

    def schedule(self, reminder_id: str, title: str, body: str, fire_at: datetime) -> ReminderHandle:
        reminder = Reminder(id=str(reminder_id), title=title, body=body, fire_at=fire_at)
        with self._lock:
            replaced = reminder.id in self._pending
            self._pending[reminder.id] = reminder
        logger.info(
            "Reminder %s id=%s fire_at=%s",
            "rescheduled" if replaced else "scheduled",
            reminder.id,
            fire_at.isoformat(timespec="minutes"),
        )
        return ReminderHandle(self, reminder)

    def cancel(self, reminder_id: str, *, only: Reminder | None = None) -> bool:
        """
        Drop a pending reminder. With `only`, cancel just that exact reminder
        (a stale handle must not cancel a newer reminder with the same id).
        """
        with self._lock:
            current = self._pending.get(reminder_id)
            if current is None or (only is not None and current != only):
                return False
            del self._pending[reminder_id]
        logger.debug("Reminder cancelled id=%s", reminder_id)
        return True

    def pending(self) -> list[Reminder]:
        with self._lock:
            items = list(self._pending.values())
        return sorted(items, key=lambda r: r.fire_at)

    def pop_due(self, now: datetime | None = None) -> list[Reminder]:
        now = now or self._clock()
        with self._lock:
            due = [r for r in self._pending.values() if r.fire_at <= now]
            for r in due:
                del self._pending[r.id]
        return sorted(due, key=lambda r: r.fire_at)

    async def run(self, notifier: Notifier, *, interval_seconds: float = 15.0) -> None:
        """
        Polling loop. Every interval_seconds, fire everything that is due.

        A failed notification is logged and dropped (no retry).
        To stop the loop, cancel the coroutine/task.
        """
        sleep_s = max(0.01, float(interval_seconds))

        while True:
            for reminder in self.pop_due():
                try:
                    await notifier.notify(title=reminder.title, body=reminder.body)
                    logger.info("Reminder fired id=%s", reminder.id)
                except Exception:
                    logger.exception("Reminder notify failed id=%s", reminder.id)

            await asyncio.sleep(sleep_s)


def reminder_fire_time(task: Task) -> datetime | None:
    """
    When to remind about a task: its due time minus notification.beforeMinutes.

    A date-only dueDate takes notification.time (HH:MM) as the time of day,
    9:00 otherwise.
    """
    settings = task.notification
    if settings is None or not settings.enabled or task.completed:
        return None

    raw = (task.due_date or "").strip()
    try:
        due = datetime.fromisoformat(raw)
    except ValueError:
        return None

    if len(raw) <= 10:
        hour, minute = 9, 0
        if settings.time:
            try:
                parsed = datetime.strptime(settings.time.strip()[:5], "%H:%M")
                hour, minute = parsed.hour, parsed.minute
            except ValueError:
                logger.debug("Bad reminder time %r on task %s", settings.time, task.id)
        due = due.replace(hour=hour, minute=minute)

    if due.tzinfo is not None:
        due = due.astimezone().replace(tzinfo=None)

    return due - timedelta(minutes=max(0, settings.before_minutes or 0))


def schedule_task_reminder(scheduler: ReminderScheduler, task: Task) -> ReminderHandle | None:
    """Schedule (or clear) the reminder of a task according to its notification settings."""
    fire_at = reminder_fire_time(task)
    if fire_at is None:
        scheduler.cancel(task.id)
        return None
    return scheduler.schedule(task.id, "Task reminder", task.title, fire_at)
