"""Turn orchestration: inbound message -> window -> completion -> outbound chunks.

Every failure named below is recovered at the turn boundary. The channel
sees silence and the log gets an entry; nothing is echoed back.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .core.assembler import WindowAssembler
from .core.ingest import MessageIngestor
from .core.markers import MarkerParser
from .patterns import DEFAULT_SYSTEM_PROMPT
from .render.chunker import render_iter, split_message
from .render.renderers import cleanup_paths
from .token_counter import CounterLike
from .types import (
    Aside,
    Barrier,
    CompletionError,
    CompletionProvider,
    DocumentRenderer,
    HistoryFetchError,
    HistoryProvider,
    ImageChunk,
    OmniteaConfig,
    OutboundSender,
    RawMessage,
    RenderChunk,
    RenderError,
    SendError,
    TextChunk,
)

logger = logging.getLogger(__name__)


class TurnStatus(str, Enum):
    IGNORED = "ignored"
    BARRIER = "barrier"
    ASIDE = "aside"
    REPLIED = "replied"
    HISTORY_FAILED = "history_failed"
    COMPLETION_FAILED = "completion_failed"
    RENDER_FAILED = "render_failed"


class TurnHandler:
    """Handle one inbound message end to end."""

    def __init__(
        self,
        config: OmniteaConfig,
        history: HistoryProvider,
        sender: OutboundSender,
        provider: CompletionProvider,
        renderer: DocumentRenderer,
        token_counter: CounterLike | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        ingestor: MessageIngestor | None = None,
    ) -> None:
        self.config = config
        self.sender = sender
        self.provider = provider
        self.renderer = renderer
        self.markers = MarkerParser(config.markers.barrier_prefix, config.markers.aside_prefix)
        self.assembler = WindowAssembler(
            history,
            config=config.assembler,
            token_counter=token_counter,
            default_prompt=system_prompt,
            markers=self.markers,
            ingestor=ingestor,
        )

    def accepts(self, message: RawMessage) -> bool:
        """Only other people's messages, in direct messages or the target channel."""
        if message.is_from_self:
            return False
        return message.is_private or message.channel == self.config.platform.channel_name

    async def on_message(self, message: RawMessage) -> TurnStatus:
        if not self.accepts(message):
            return TurnStatus.IGNORED

        logger.info("Received message: %s", message.content)
        marker = self.markers.classify(message.content)
        if isinstance(marker, Barrier):
            logger.info("Barrier received")
            await self._react(message, self.config.markers.barrier_reaction)
            return TurnStatus.BARRIER
        if isinstance(marker, Aside):
            logger.info("Aside received")
            await self._react(message, self.config.markers.aside_reaction)
            return TurnStatus.ASIDE

        return await self.run_turn(message)

    async def run_turn(self, message: RawMessage) -> TurnStatus:
        try:
            window = await self.assembler.assemble(message)
        except HistoryFetchError as e:
            logger.error("Error fetching history for message %d: %s", message.id, e)
            return TurnStatus.HISTORY_FAILED

        logger.debug("Chat log: %r", window.chat_log)
        logger.info(
            "Context length: %d (%d messages, %d pages%s)",
            window.token_count,
            len(window.messages),
            window.pages_fetched,
            ", barrier" if window.barrier_found else "",
        )

        try:
            reply = await self.provider.complete(window.chat_log)
        except CompletionError as e:
            logger.error("Error completing chat (%s): %s", e.kind, e)
            return TurnStatus.COMPLETION_FAILED
        logger.debug("Completion: %s", reply.content)

        return await self.deliver(message.channel, reply.content)

    async def deliver(self, channel: str, text: str) -> TurnStatus:
        """Render and send a reply. Chunks already sent stay sent on failure."""
        try:
            async for chunk in render_iter(text, self.renderer):
                await self._send_chunk(channel, chunk)
        except RenderError as e:
            logger.error("Error rendering reply, skipping the rest: %s", e)
            return TurnStatus.RENDER_FAILED
        return TurnStatus.REPLIED

    # -- outbound --

    async def _send_chunk(self, channel: str, chunk: RenderChunk) -> None:
        if isinstance(chunk, TextChunk):
            await self._send_text(channel, chunk.text)
            return
        if isinstance(chunk, ImageChunk):
            try:
                for path in chunk.paths:
                    await self._attempt(self.sender.send_attachment(channel, path), "attachment")
                if self.config.renderer.echo_source:
                    await self._send_text(channel, chunk.source, escape=True)
            finally:
                cleanup_paths(chunk.paths)

    async def _send_text(self, channel: str, text: str, escape: bool = False) -> None:
        platform = self.config.platform
        for segment in split_message(text, platform.message_limit, platform.message_margin, escape):
            await self._attempt(self.sender.send(channel, segment), "message")

    async def _react(self, message: RawMessage, emoji: str) -> None:
        await self._attempt(self.sender.react(message.channel, message.id, emoji), "reaction")

    async def _attempt(self, send, what: str) -> bool:
        """Await one outbound call; log and carry on if it fails."""
        try:
            await send
        except Exception as e:
            err = e if isinstance(e, SendError) else SendError(str(e))
            logger.error("Error sending %s: %s", what, err)
            return False
        return True


class TurnDispatcher:
    """Run one task per inbound message; turns never wait on each other."""

    def __init__(self, handler: TurnHandler) -> None:
        self.handler = handler
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, message: RawMessage) -> asyncio.Task:
        task = asyncio.create_task(self.handler.on_message(message), name=f"turn-{message.id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        exc = task.exception() if not task.cancelled() else None
        if exc:
            logger.error("Turn task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every submitted turn to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
