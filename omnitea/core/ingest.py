"""Turn platform messages into role-tagged conversation entries."""

from __future__ import annotations

import logging

import httpx

from ..types import Attachment, AttachmentFetcher, ConversationEntry, RawMessage, Role

logger = logging.getLogger(__name__)


class HttpAttachmentFetcher:
    """Download attachment bodies as text over HTTP."""

    def __init__(self, timeout: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client

    async def fetch_text(self, attachment: Attachment) -> str:
        if self._client is not None:
            response = await self._client.get(attachment.url)
        else:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(attachment.url)
        response.raise_for_status()
        return response.text


class MessageIngestor:
    """Resolve authorship once per message and flatten it into an entry.

    Our own messages become assistant entries with their raw content.
    Everyone else's become user entries prefixed with the speaker's name,
    with the text of any attached files appended.
    """

    def __init__(self, fetcher: AttachmentFetcher | None = None) -> None:
        self.fetcher = fetcher

    async def ingest(self, message: RawMessage) -> ConversationEntry:
        if message.is_from_self:
            return ConversationEntry(role=Role.ASSISTANT, content=message.content)

        content = message.content
        if message.attachments and self.fetcher is not None:
            for attachment in message.attachments:
                body = await self.fetcher.fetch_text(attachment)
                logger.debug("Attached %s (%d chars) from message %d", attachment.name, len(body), message.id)
                content += f"\nFile {attachment.name}: \n{body}"

        return ConversationEntry(role=Role.USER, content=f"{message.author.label} says: {content}")
