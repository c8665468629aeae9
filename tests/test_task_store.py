# tests/test_task_store.py

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from minimind.storage.blob_store import JsonFileBlobStore
from minimind.tasks.task_models import Priority, Repeat, RepeatType
from minimind.tasks.task_store import (
    CUSTOM_CATEGORIES_KEY,
    CUSTOM_TAGS_KEY,
    DARK_MODE_KEY,
    PROJECTS_KEY,
    TASKS_KEY,
    PersistError,
    TaskStore,
)

from .conftest import FIXED_NOW
from .fakes import FailingBlobStore, FakeBlobStore


def test_add_task_applies_defaults_and_persists(store: TaskStore, blobs: FakeBlobStore) -> None:
    res = store.add_task("  Buy milk  ", tags=["shop", " shop ", ""])

    task = res.value
    assert res.ok
    assert task.title == "Buy milk"
    assert task.tags == ("shop",)
    assert task.category == ""
    assert task.priority is Priority.MEDIUM
    assert task.due_date == "2024-03-01"
    assert task.created_at == "2024-03-01T08:30:00"
    assert store.tasks == (task,)

    assert blobs.writes == [TASKS_KEY]
    saved = json.loads(blobs.items[TASKS_KEY])
    assert saved[0]["dueDate"] == "2024-03-01"
    assert saved[0]["createdAt"] == "2024-03-01T08:30:00"
    assert "projectId" not in saved[0]


def test_add_task_requires_title(store: TaskStore, blobs: FakeBlobStore) -> None:
    with pytest.raises(ValueError):
        store.add_task("   ")
    assert store.tasks == ()
    assert blobs.writes == []


def test_ids_are_unique(store: TaskStore) -> None:
    ids = {store.add_task(f"t{i}").value.id for i in range(50)}
    assert len(ids) == 50


def test_update_task_replaces_by_id(store: TaskStore, blobs: FakeBlobStore) -> None:
    task = store.add_task("Draft").value
    res = store.update_task(replace(task, title="Final", priority=Priority.HIGH))

    assert res.value is not None
    assert store.get_task(task.id).title == "Final"  # type: ignore[union-attr]
    assert blobs.writes == [TASKS_KEY, TASKS_KEY]


def test_update_unknown_task_is_noop(store: TaskStore, blobs: FakeBlobStore) -> None:
    task = store.add_task("Draft").value
    store.delete_task(task.id)
    writes = len(blobs.writes)

    res = store.update_task(replace(task, title="Ghost"))

    assert res.value is None
    assert store.tasks == ()
    assert len(blobs.writes) == writes


def test_toggle_daily_spawns_next_in_one_write(store: TaskStore, blobs: FakeBlobStore) -> None:
    task = store.add_task("Stretch", due_date="2024-03-01", repeat=Repeat(type=RepeatType.DAILY)).value
    blobs.writes.clear()

    res = store.toggle_task_status(task.id)

    toggle = res.value
    assert toggle is not None
    assert toggle.task.completed is True
    assert toggle.next_task is not None
    assert toggle.next_task.due_date == "2024-03-02"
    assert toggle.next_task.completed is False
    assert len(store.tasks) == 2
    assert blobs.writes == [TASKS_KEY]

    saved = json.loads(blobs.items[TASKS_KEY])
    assert [t["completed"] for t in saved] == [True, False]


def test_uncompleting_recurring_task_spawns_nothing(store: TaskStore) -> None:
    task = store.add_task("Stretch", repeat=Repeat(type=RepeatType.DAILY), completed=True).value

    res = store.toggle_task_status(task.id)

    assert res.value is not None
    assert res.value.task.completed is False
    assert res.value.next_task is None
    assert len(store.tasks) == 1


def test_toggle_past_end_date_spawns_nothing(store: TaskStore) -> None:
    repeat = Repeat(type=RepeatType.WEEKLY, end_date="2024-03-05")
    task = store.add_task("Standup", due_date="2024-03-01", repeat=repeat).value

    res = store.toggle_task_status(task.id)

    assert res.value is not None and res.value.next_task is None
    assert len(store.tasks) == 1


def test_toggle_unknown_id(store: TaskStore, blobs: FakeBlobStore) -> None:
    assert store.toggle_task_status("missing").value is None
    assert blobs.writes == []


def test_delete_and_delete_all(store: TaskStore) -> None:
    a = store.add_task("a").value
    store.add_task("b")
    store.add_task("c")

    assert store.delete_task(a.id).value is True
    assert store.delete_task(a.id).value is False
    assert store.delete_all_tasks().value == 2
    assert store.tasks == ()


def test_delete_project_detaches_tasks(store: TaskStore, blobs: FakeBlobStore) -> None:
    home = store.add_project("Home").value
    work = store.add_project("Work").value
    store.add_task("Fix sink", project_id=home.id)
    store.add_task("Paint fence", project_id=home.id)
    store.add_task("Report", project_id=work.id)
    blobs.writes.clear()

    res = store.delete_project(home.id)

    assert res.value == 2
    assert len(store.tasks) == 3
    assert [p.name for p in store.projects] == ["Work"]
    assert all(t.project_id != home.id for t in store.tasks)
    assert len(store.get_project_tasks(work.id)) == 1
    assert set(blobs.writes) == {PROJECTS_KEY, TASKS_KEY}


def test_project_validation(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.add_project(" ")
    project = store.add_project("Garden").value
    assert project.color == "#4A90E2"
    assert store.get_project(project.id) == project


def test_custom_tags(store: TaskStore, blobs: FakeBlobStore) -> None:
    assert store.add_custom_tag("Urgent").value is True
    assert store.add_custom_tag("Urgent").value is False
    assert blobs.writes == [CUSTOM_TAGS_KEY]

    store.add_task("a", tags=["Urgent", "Later"])
    store.add_task("b", tags=["Later"])
    blobs.writes.clear()

    res = store.delete_custom_tag("Urgent")

    assert res.value == 1
    assert store.custom_tags == ()
    assert [t.tags for t in store.tasks] == [("Later",), ("Later",)]
    assert set(blobs.writes) == {CUSTOM_TAGS_KEY, TASKS_KEY}


def test_custom_categories(store: TaskStore) -> None:
    store.add_custom_category("Health")
    store.add_custom_category("Work")
    store.add_task("Run", category="Health")
    store.add_task("Email", category="Work")

    res = store.delete_custom_category("Health")

    assert res.value == 1
    assert store.custom_categories == ("Work",)
    assert [t.category for t in store.tasks] == ["", "Work"]


def test_dark_mode_persists_only_preference(store: TaskStore, blobs: FakeBlobStore) -> None:
    assert store.toggle_dark_mode().value is True
    assert store.toggle_dark_mode().value is False
    assert blobs.writes == [DARK_MODE_KEY, DARK_MODE_KEY]
    assert json.loads(blobs.items[DARK_MODE_KEY]) is False


def test_persist_failure_keeps_memory_and_reports() -> None:
    seen: list[PersistError] = []
    store = TaskStore(FailingBlobStore(), on_persist_error=seen.append, clock=lambda: FIXED_NOW)

    res = store.add_task("Still here")

    assert not res.ok
    assert res.errors[0].key == TASKS_KEY
    assert "disk full" in res.errors[0].message
    assert seen == list(res.errors)
    assert [t.title for t in store.tasks] == ["Still here"]


def test_partial_persist_failure() -> None:
    blobs = FailingBlobStore(fail_keys={PROJECTS_KEY})
    store = TaskStore(blobs)
    project = store.add_project("P").value
    store.add_task("t", project_id=project.id)

    res = store.delete_project(project.id)

    assert [e.key for e in res.errors] == [PROJECTS_KEY]
    assert TASKS_KEY in blobs.writes


def test_initialize_store_first_run(store: TaskStore) -> None:
    assert store.initialize_store() is False
    assert store.tasks == ()
    assert store.dark_mode is False


def test_initialize_store_skips_bad_data() -> None:
    tasks = [
        {"id": "1", "title": "ok", "dueDate": "2024-03-01", "createdAt": "2024-03-01T00:00:00"},
        {"id": "1", "title": "dup", "dueDate": "2024-03-01"},
        {"title": "no id"},
        "junk",
    ]
    blobs = FakeBlobStore(
        {
            TASKS_KEY: json.dumps(tasks),
            PROJECTS_KEY: "{not json",
            DARK_MODE_KEY: "true",
            CUSTOM_TAGS_KEY: json.dumps(["A", "A", "B"]),
        }
    )
    store = TaskStore(blobs)

    assert store.initialize_store() is True
    assert [t.title for t in store.tasks] == ["ok"]
    assert store.tasks[0].priority is Priority.MEDIUM
    assert store.projects == ()
    assert store.dark_mode is True
    assert store.custom_tags == ("A", "B")
    assert store.custom_categories == ()


def test_round_trip_through_json_files(tmp_path: Path) -> None:
    first = TaskStore(JsonFileBlobStore(tmp_path), clock=lambda: FIXED_NOW)
    project = first.add_project("Home", color="#FF0000").value
    task = first.add_task(
        "Water plants",
        due_date="2024-01-31",
        tags=["Garden"],
        priority="high",
        repeat=Repeat(type=RepeatType.MONTHLY, interval=2, end_date="2024-12-31"),
        project_id=project.id,
    ).value
    other = first.add_task("Buy milk").value
    first.add_custom_category("Home")
    first.toggle_dark_mode()

    # edits with stray whitespace are stored the way a reload reads them
    other = first.update_task(replace(other, title="  Buy milk  ", category=" Shop ", tags=(" a ", "a"))).value
    project = first.update_project(replace(project, name="  Home  ")).value
    assert other is not None and other.title == "Buy milk"
    assert other.category == "Shop" and other.tags == ("a",)
    assert project is not None and project.name == "Home"

    second = TaskStore(JsonFileBlobStore(tmp_path))
    assert second.initialize_store() is True

    assert second.tasks == first.tasks == (task, other)
    assert second.projects == first.projects == (project,)
    assert second.custom_categories == ("Home",)
    assert second.dark_mode is True
    assert (tmp_path / "todo_app_tasks.json").exists()


def test_update_validation(store: TaskStore) -> None:
    task = store.add_task("t").value
    project = store.add_project("p").value

    with pytest.raises(ValueError):
        store.update_task(replace(task, title="   "))
    with pytest.raises(ValueError):
        store.update_project(replace(project, name=" "))
    assert store.tasks == (task,)
    assert store.projects == (project,)


def test_initialize_store_coerces_loose_types() -> None:
    tasks = [
        {"id": "1", "title": "string flag", "completed": "false", "projectId": 42},
        {"id": "2", "title": "numeric flag", "completed": 1, "projectId": ""},
        {"id": "3", "title": "real flag", "completed": True},
    ]
    store = TaskStore(FakeBlobStore({TASKS_KEY: json.dumps(tasks)}))

    store.initialize_store()

    assert [t.completed for t in store.tasks] == [False, False, True]
    assert [t.project_id for t in store.tasks] == ["42", None, None]
