# src/minimind/tasks/recurrence.py

from __future__ import annotations

"""
Recurring task projection.

Two questions are answered here:
- does a recurring task have an occurrence on a given day (occurs_on),
- what is the next instance when the current one is completed (next_occurrence).

Both are called from render/command paths, so bad input (unparseable dates)
degrades to "no occurrence" instead of raising.
"""

import calendar
import logging
from dataclasses import replace
from datetime import date, datetime, timedelta

from .task_models import RepeatType, Task, new_id, now_iso

logger = logging.getLogger(__name__)

DayLike = date | datetime | str


def parse_day(value: DayLike | None) -> date | None:
    """Reduce an ISO string / datetime / date to its calendar day; None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def _last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _add_months(d: date, months: int) -> date:
    idx = d.year * 12 + (d.month - 1) + months
    year, month0 = divmod(idx, 12)
    month = month0 + 1
    return date(year, month, min(d.day, _last_day_of_month(year, month)))


def _month_distance(start: date, end: date) -> int:
    return (end.year * 12 + end.month) - (start.year * 12 + start.month)


def occurs_on(task: Task, target: DayLike) -> bool:
    """
    True if the task has an occurrence on the target day.

    The anchor is the task's own dueDate. Nothing occurs before the anchor or
    after repeat.endDate. A task without a recurrence rule only "occurs" on
    its anchor day.
    """
    anchor = parse_day(task.due_date)
    day = parse_day(target)
    if anchor is None or day is None:
        return False

    if day < anchor:
        return False

    repeat = task.repeat
    if repeat is None or repeat.type is RepeatType.NONE:
        return day == anchor

    if repeat.end_date:
        end = parse_day(repeat.end_date)
        if end is not None and day > end:
            return False

    interval = max(1, repeat.interval)
    days_since = (day - anchor).days

    if repeat.type is RepeatType.DAILY:
        return days_since % interval == 0

    if repeat.type is RepeatType.WEEKLY:
        return (days_since // 7) % interval == 0 and day.weekday() == anchor.weekday()

    if repeat.type is RepeatType.MONTHLY:
        if _month_distance(anchor, day) % interval != 0:
            return False
        return day.day == min(anchor.day, _last_day_of_month(day.year, day.month))

    return False


def is_repeating_occurrence(task: Task, target: DayLike) -> bool:
    """An occurrence other than the task's own due day (shown under "Repeating")."""
    day = parse_day(target)
    if day is None or day == parse_day(task.due_date):
        return False
    return occurs_on(task, day)


def _shift_due(due_raw: str, repeat_type: RepeatType, interval: int) -> str | None:
    raw = (due_raw or "").strip()
    if not raw:
        return None

    has_time = len(raw) > 10
    if has_time:
        try:
            due_dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
        due_day = due_dt.date()
    else:
        try:
            due_day = date.fromisoformat(raw)
        except ValueError:
            return None
        due_dt = None

    if repeat_type is RepeatType.DAILY:
        next_day = due_day + timedelta(days=interval)
    elif repeat_type is RepeatType.WEEKLY:
        next_day = due_day + timedelta(weeks=interval)
    elif repeat_type is RepeatType.MONTHLY:
        next_day = _add_months(due_day, interval)
    else:
        return None

    if due_dt is None:
        return next_day.isoformat()
    shifted = due_dt.replace(year=next_day.year, month=next_day.month, day=next_day.day)
    return shifted.isoformat()


def next_occurrence(task: Task, *, now: datetime | None = None) -> Task | None:
    """
    Build the next instance of a recurring task.

    The new due date chains off the task's *current* dueDate. Returns None when
    the task is not recurring, its dates are invalid, or the next date falls
    after repeat.endDate.
    """
    repeat = task.repeat
    if repeat is None or not repeat.is_recurring:
        return None

    next_due = _shift_due(task.due_date, repeat.type, max(1, repeat.interval))
    if next_due is None:
        logger.warning("Cannot project next occurrence task_id=%s due=%r", task.id, task.due_date)
        return None

    if repeat.end_date:
        end = parse_day(repeat.end_date)
        next_day = parse_day(next_due)
        if end is not None and next_day is not None and next_day > end:
            logger.debug("Recurrence ended task_id=%s next=%s end=%s", task.id, next_due, end)
            return None

    return replace(
        task,
        id=new_id(),
        due_date=next_due,
        completed=False,
        created_at=now_iso(now),
    )
