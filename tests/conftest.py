# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from minimind.core.state import AppState
from minimind.tasks.reminders import ReminderScheduler
from minimind.tasks.task_store import TaskStore

from .fakes import FakeBlobStore, FakeLLMClient

FIXED_NOW = datetime(2024, 3, 1, 8, 30, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="minimind-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        store_dir=tmp_path / "store",
        openrouter_api_key=None,
        openrouter_base_url="https://openrouter.ai/api/v1",
        llm_models=["test/model"],
        extra_headers={},
        reminders_enabled=True,
        reminder_poll_seconds=0.01,
    )


@pytest.fixture()
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture()
def store(blobs: FakeBlobStore) -> TaskStore:
    """TaskStore over an in-memory blob store with a frozen clock."""
    return TaskStore(blobs, clock=lambda: FIXED_NOW)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, llm: FakeLLMClient) -> AppState:
    """AppState wired with deterministic fakes (real TaskStore, fake storage)."""
    persist_errors: list = []
    store = TaskStore(FakeBlobStore(), on_persist_error=persist_errors.append)
    return AppState(
        settings=settings,
        store=store,
        llm=llm,
        reminders=ReminderScheduler(),
        persist_errors=persist_errors,
    )
