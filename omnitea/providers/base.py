"""Completion provider base class with the shared request path."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from ..core.chat_log import ChatLog
from ..types import CompletionError, ConversationEntry

logger = logging.getLogger(__name__)


class BaseCompletionProvider(ABC):
    """Abstract base for completion backends. Subclasses override hook
    methods; the request in ``complete()`` is shared.

    A single request is made per call. Retrying is left to the caller.
    """

    _timeout: float = 120.0

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self.last_usage: dict = {}
        self._client = client

    # -- hook methods subclasses must implement --

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, chat_log: ChatLog) -> dict: ...

    @abstractmethod
    def _extract_entry(self, data: dict) -> ConversationEntry: ...

    # -- shared request path --

    async def complete(self, chat_log: ChatLog) -> ConversationEntry:
        """Send the chat log and return the first choice."""
        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(chat_log)

        try:
            if self._client is not None:
                response = await self._client.post(url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise CompletionError(
                f"HTTP error: {e}", provider=self._provider_name(), kind="transport"
            ) from e

        if response.status_code != 200:
            raise CompletionError(
                f"HTTP {response.status_code}: {response.text}",
                provider=self._provider_name(),
                kind="transport",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CompletionError(
                f"Invalid JSON in response: {e}", provider=self._provider_name(), kind="transport"
            ) from e

        self.last_usage = data.get("usage", {}) if isinstance(data, dict) else {}
        if self.last_usage:
            logger.debug("Completion usage: %s", self.last_usage)
        return self._extract_entry(data)
