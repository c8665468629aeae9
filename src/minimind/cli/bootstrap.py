# src/minimind/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (blob store, task store, LLM, reminders),
- loads persisted snapshots and re-arms reminders for open tasks.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..config import get_settings
from ..core.ports import LLMClient
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..storage.blob_store import JsonFileBlobStore
from ..tasks.reminders import ReminderScheduler, reminder_fire_time, schedule_task_reminder
from ..tasks.task_store import PersistError, TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    try:
        llm_client = OpenRouterLLMClient(settings)
    except RuntimeError as e:
        logger.info("Voice capture runs offline: %s", e)
        llm_client = OfflineLLMClient()

    persist_errors: list[PersistError] = []
    store = TaskStore(JsonFileBlobStore(settings.store_dir), on_persist_error=persist_errors.append)

    return AppState(
        settings=settings,
        store=store,
        llm=llm_client,
        reminders=ReminderScheduler(),
        persist_errors=persist_errors,
    )


def load_state(state: AppState) -> None:
    """Run the initial store load and schedule upcoming reminders of loaded tasks."""
    state.store.initialize_store()

    now = datetime.now()
    armed = 0
    for task in state.store.tasks:
        fire_at = reminder_fire_time(task)
        if fire_at is None or fire_at <= now:
            continue
        if schedule_task_reminder(state.reminders, task) is not None:
            armed += 1
    logger.info(
        "Store loaded: %d tasks, %d projects, %d reminders armed",
        len(state.store.tasks),
        len(state.store.projects),
        armed,
    )
