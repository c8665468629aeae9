# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from minimind.core.ports import ChatMessage


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    """

    def __init__(self, next_text: str = "[]") -> None:
        self.next_text = next_text
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        yield self.next_text


class FailingLLMClient:
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        raise RuntimeError("LLM is down")


class FakeBlobStore:
    """In-memory BlobStore; `writes` records every set_item key in order."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})
        self.writes: list[str] = []

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.writes.append(key)
        self.items[key] = value


class FailingBlobStore(FakeBlobStore):
    """Reads work, writes for the listed keys (all keys if None) raise OSError."""

    def __init__(self, items: dict[str, str] | None = None, *, fail_keys: set[str] | None = None) -> None:
        super().__init__(items)
        self.fail_keys = fail_keys

    def set_item(self, key: str, value: str) -> None:
        if self.fail_keys is None or key in self.fail_keys:
            raise OSError("disk full")
        super().set_item(key, value)


@dataclass(slots=True)
class Notification:
    title: str
    body: str


@dataclass(slots=True)
class FakeNotifier:
    sent: list[Notification] = field(default_factory=list)
    fail: bool = False

    async def notify(self, *, title: str, body: str) -> None:
        if self.fail:
            raise RuntimeError("notifier broken")
        self.sent.append(Notification(title=title, body=body))
