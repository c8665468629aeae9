# src/minimind/tasks/agenda.py

from __future__ import annotations

"""
Per-day task lists as shown by the "Today" and "Upcoming" views.

Grouping is presentation only; it sits on top of occurs_on and does not
change what counts as an occurrence.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from .recurrence import DayLike, is_repeating_occurrence, occurs_on, parse_day
from .task_models import PRIORITY_ORDER, Task


@dataclass(slots=True)
class DayAgenda:
    day: date
    tasks: list[Task] = field(default_factory=list)
    repeating: list[Task] = field(default_factory=list)
    completed: list[Task] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.tasks or self.repeating or self.completed)

    def sections(self) -> list[tuple[str, list[Task]]]:
        """Non-empty sections in display order."""
        out = [("Tasks", self.tasks), ("Repeating", self.repeating), ("Completed", self.completed)]
        return [(title, items) for title, items in out if items]


def _by_priority(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: PRIORITY_ORDER.get(t.priority, 1))


def agenda_for_day(tasks: Iterable[Task], day: DayLike) -> DayAgenda:
    target = parse_day(day)
    if target is None:
        raise ValueError(f"invalid day: {day!r}")

    agenda = DayAgenda(day=target)
    for t in tasks:
        if t.completed:
            # a completed instance stays on its own day; its successor carries the series
            if parse_day(t.due_date) == target:
                agenda.completed.append(t)
            continue
        if not occurs_on(t, target):
            continue
        if is_repeating_occurrence(t, target):
            agenda.repeating.append(t)
        else:
            agenda.tasks.append(t)

    agenda.tasks = _by_priority(agenda.tasks)
    agenda.repeating = _by_priority(agenda.repeating)
    return agenda


def upcoming_dates(start: date, days: int = 14) -> list[date]:
    return [start + timedelta(days=i) for i in range(max(0, days))]
