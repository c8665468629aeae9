# tests/test_storage_and_config.py

from __future__ import annotations

from pathlib import Path

from minimind.cli.bootstrap import create_initial_state, load_state
from minimind.config import DEFAULT_LLM_MODELS, Settings
from minimind.llm.offline import OfflineLLMClient
from minimind.storage.blob_store import JsonFileBlobStore
from minimind.tasks.task_models import ReminderSettings


def test_blob_store_roundtrip(tmp_path: Path) -> None:
    blobs = JsonFileBlobStore(tmp_path / "store")

    assert blobs.get_item("@todo_app_tasks") is None
    blobs.set_item("@todo_app_tasks", '[{"id": "1"}]')
    blobs.set_item("@todo_app_tasks", "[]")

    assert blobs.get_item("@todo_app_tasks") == "[]"
    assert blobs.path_for("@todo_app_tasks").name == "todo_app_tasks.json"
    assert blobs.path_for("../../etc/passwd").parent == blobs.root
    assert not list(blobs.root.glob("*.tmp"))


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    for name in ("MINIMIND_OPENROUTER_API_KEY", "OPENROUTER_API_KEY", "MINIMIND_LLM_MODELS", "MINIMIND_STORE_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MINIMIND_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("MINIMIND_REMINDERS_ENABLED", "no")
    monkeypatch.setenv("MINIMIND_REMINDER_POLL_SECONDS", "0.2")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.store_dir == tmp_path / "store"
    assert s.openrouter_api_key is None
    assert s.llm_models == DEFAULT_LLM_MODELS
    assert s.reminders_enabled is False
    assert s.reminder_poll_seconds == 1.0

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-plain")
    monkeypatch.setenv("MINIMIND_LLM_MODELS", "a/one, b/two")
    s2 = Settings.from_env()
    assert s2.openrouter_api_key == "sk-plain"
    assert s2.llm_models == ["a/one", "b/two"]


def test_bootstrap_falls_back_offline_and_rearms_reminders(settings) -> None:
    state = create_initial_state(settings=settings)
    assert isinstance(state.llm, OfflineLLMClient)
    assert settings.store_dir.is_dir()

    state.store.add_task("Past", due_date="2000-01-01", notification=ReminderSettings(enabled=True))
    future = state.store.add_task("Future", due_date="2999-01-01", notification=ReminderSettings(enabled=True)).value

    reloaded = create_initial_state(settings=settings)
    load_state(reloaded)

    assert len(reloaded.store.tasks) == 2
    assert [r.id for r in reloaded.reminders.pending()] == [future.id]
