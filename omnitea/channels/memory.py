"""MemoryChannel: an in-process chat channel for local runs and tests."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from ..types import Attachment, Author, RawMessage


@dataclass
class SentItem:
    channel: str
    kind: str  # "text", "attachment", "reaction"
    value: str
    message_id: int | None = None


@dataclass
class MemoryChannel:
    """History provider and outbound sender backed by a list.

    Pages come back newest-first, the way chat platforms return them.
    Text sent by the bot is appended to history as its own message so the
    next turn sees it.
    """
    name: str = "omnitea"
    bot: Author = field(default_factory=lambda: Author(id=0, name="omnitea"))
    private: bool = False
    history: list[RawMessage] = field(default_factory=list)
    sent: list[SentItem] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    def post(
        self,
        author: Author,
        content: str,
        attachments: tuple[Attachment, ...] = (),
    ) -> RawMessage:
        message = RawMessage(
            id=next(self._ids),
            author=author,
            channel=self.name,
            content=content,
            attachments=attachments,
            is_from_self=author.id == self.bot.id,
            is_private=self.private,
        )
        self.history.append(message)
        return message

    # -- HistoryProvider --

    async def fetch_before(self, channel: str, before_id: int, limit: int) -> list[RawMessage]:
        older = [m for m in self.history if m.channel == channel and m.id < before_id]
        return list(reversed(older[-limit:])) if limit > 0 else []

    # -- OutboundSender --

    async def send(self, channel: str, text: str) -> None:
        self.sent.append(SentItem(channel=channel, kind="text", value=text))
        self.post(self.bot, text)

    async def send_attachment(self, channel: str, path: str) -> None:
        self.sent.append(SentItem(channel=channel, kind="attachment", value=path))

    async def react(self, channel: str, message_id: int, emoji: str) -> None:
        self.sent.append(SentItem(channel=channel, kind="reaction", value=emoji, message_id=message_id))

    # -- inspection helpers --

    def texts(self) -> list[str]:
        return [s.value for s in self.sent if s.kind == "text"]

    def attachments(self) -> list[str]:
        return [s.value for s in self.sent if s.kind == "attachment"]

    def reactions(self) -> list[tuple[int | None, str]]:
        return [(s.message_id, s.value) for s in self.sent if s.kind == "reaction"]
