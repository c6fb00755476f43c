"""OpenAIChatProvider: OpenAI-compatible /chat/completions endpoint via httpx.

Works with api.openai.com or any server exposing the same request and
response shapes.
"""

from __future__ import annotations

import httpx

from ..core.chat_log import ChatLog
from ..types import CompletionError, ConversationEntry, Role
from .base import BaseCompletionProvider


class OpenAIChatProvider(BaseCompletionProvider):
    """Completion provider using the chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(client=client)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _provider_name(self) -> str:
        return "openai"

    def _get_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, chat_log: ChatLog) -> dict:
        return {
            "model": self.model,
            "messages": chat_log.to_payload(),
        }

    def _extract_entry(self, data: dict) -> ConversationEntry:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise CompletionError("No choices", provider=self._provider_name(), kind="empty")
        message = choices[0].get("message") or {}
        try:
            role = Role(message.get("role", "assistant"))
        except ValueError as e:
            raise CompletionError(
                f"Unknown role in choice: {message.get('role')!r}",
                provider=self._provider_name(),
                kind="transport",
            ) from e
        return ConversationEntry(role=role, content=message.get("content") or "")
