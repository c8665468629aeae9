# src/minimind/llm/offline.py

from __future__ import annotations

from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline client used when no external API is configured.

    It produces no content, so voice capture falls back to creating one task
    from the raw text.
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        return iter(())
