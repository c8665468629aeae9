# src/minimind/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The store, reminder scheduler and voice capture depend on Protocols instead of
concrete implementations, so storage backends, LLM providers and notification
sinks stay swappable and tests can use in-memory fakes.
"""

from typing import Any, Awaitable, Iterable, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class BlobStore(Protocol):
    """
    Key-value store of serialized snapshots (one JSON string per key).

    get_item returns None when the key was never written.
    set_item may raise; the task store catches and reports it.
    """

    def get_item(self, key: str) -> str | None: ...
    def set_item(self, key: str, value: str) -> None: ...


class Notifier(Protocol):
    """Where fired reminders go (console, desktop notification, chat...)."""

    def notify(self, *, title: str, body: str) -> Awaitable[None]: ...


class TaskRepo(Protocol):
    """
    Operation set shared by every task store implementation.

    The local TaskStore implements it on top of a BlobStore; a network-backed
    store would proxy the same calls to a remote backend.
    """

    def initialize_store(self) -> bool: ...

    def add_task(self, title: str, **fields: Any) -> Any: ...
    def update_task(self, task: Any) -> Any: ...
    def toggle_task_status(self, task_id: str) -> Any: ...
    def delete_task(self, task_id: str) -> Any: ...
    def delete_all_tasks(self) -> Any: ...

    def add_project(self, name: str, **fields: Any) -> Any: ...
    def update_project(self, project: Any) -> Any: ...
    def delete_project(self, project_id: str) -> Any: ...
    def get_project_tasks(self, project_id: str) -> Any: ...
