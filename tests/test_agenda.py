# tests/test_agenda.py

from __future__ import annotations

from datetime import date

import pytest

from minimind.tasks.agenda import agenda_for_day, upcoming_dates
from minimind.tasks.task_models import Priority, Repeat, RepeatType, Task


def _task(task_id: str, due: str, *, repeat: str | None = None, priority: Priority = Priority.MEDIUM,
          completed: bool = False) -> Task:
    return Task(
        id=task_id,
        title=f"task {task_id}",
        due_date=due,
        created_at="2024-01-01T00:00:00",
        priority=priority,
        completed=completed,
        repeat=Repeat(type=RepeatType(repeat)) if repeat else None,
    )


def test_agenda_groups_and_sorts() -> None:
    tasks = [
        _task("low", "2024-03-05", priority=Priority.LOW),
        _task("high", "2024-03-05", priority=Priority.HIGH),
        _task("daily", "2024-03-01", repeat="daily"),
        _task("done", "2024-03-05", completed=True),
        _task("other-day", "2024-03-06"),
    ]

    agenda = agenda_for_day(tasks, "2024-03-05")

    assert [t.id for t in agenda.tasks] == ["high", "low"]
    assert [t.id for t in agenda.repeating] == ["daily"]
    assert [t.id for t in agenda.completed] == ["done"]
    assert [title for title, _ in agenda.sections()] == ["Tasks", "Repeating", "Completed"]


def test_completed_recurring_instance_stays_on_its_day() -> None:
    done = _task("done", "2024-03-01", repeat="daily", completed=True)

    assert agenda_for_day([done], date(2024, 3, 1)).completed == [done]
    assert agenda_for_day([done], date(2024, 3, 2)).is_empty


def test_empty_day_and_invalid_input() -> None:
    agenda = agenda_for_day([], "2024-03-01")
    assert agenda.is_empty
    assert agenda.sections() == []

    with pytest.raises(ValueError):
        agenda_for_day([], "tomorrow-ish")


def test_upcoming_dates() -> None:
    days = upcoming_dates(date(2024, 2, 27), 4)
    assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
    assert upcoming_dates(date(2024, 2, 27), 0) == []
