# src/minimind/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.reminders import ReminderScheduler
from ..tasks.task_store import PersistError, TaskStore
from .ports import LLMClient


@dataclass
class AppState:
    # Settings are kept on the state so commands don't read global config.
    settings: Any

    store: TaskStore
    llm: LLMClient
    reminders: ReminderScheduler

    # Persistence failures reported by the store since the last /status.
    persist_errors: list[PersistError] = field(default_factory=list)
