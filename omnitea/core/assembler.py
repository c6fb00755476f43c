"""WindowAssembler: pick the prior messages that go into the next completion.

Assembly runs in three phases:

1. Expanding - page backwards through channel history, prepending each
   accepted message, until history runs out, a barrier is found, or the
   materialized chat log goes over budget.
2. Contracting - drop the oldest message until the log fits, never going
   below the triggering message.
3. Done - materialize the final chat log.
"""

from __future__ import annotations

import logging

from ..patterns import DEFAULT_SYSTEM_PROMPT
from ..token_counter import CounterLike, as_token_counter, estimate_tokens
from ..types import (
    AssembledWindow,
    AssemblerConfig,
    Aside,
    Barrier,
    ConversationEntry,
    HistoryFetchError,
    HistoryProvider,
    RawMessage,
    WindowState,
)
from .chat_log import ChatLog
from .ingest import MessageIngestor
from .markers import MarkerParser

logger = logging.getLogger(__name__)

# The system prompt sits this many entries before the end of the window
PROMPT_OFFSET = 4


def build_chat_log(entries: list[ConversationEntry], prompt: str) -> ChatLog:
    """Materialize a chat log with exactly one system entry.

    The system entry goes immediately before the entry at ``len - 4``, or
    before the first entry when there are fewer than four.
    """
    insert_at = max(len(entries) - PROMPT_OFFSET, 0)
    log = ChatLog()
    for i, entry in enumerate(entries):
        if i == insert_at:
            log = log.system(prompt)
        log = log.append(entry)
    if not entries:
        log = log.system(prompt)
    return log


class WindowAssembler:
    """Assemble a token-bounded chat log ending at a triggering message."""

    def __init__(
        self,
        history: HistoryProvider,
        config: AssemblerConfig | None = None,
        token_counter: CounterLike | None = None,
        default_prompt: str = DEFAULT_SYSTEM_PROMPT,
        markers: MarkerParser | None = None,
        ingestor: MessageIngestor | None = None,
    ) -> None:
        self.history = history
        self.config = config or AssemblerConfig()
        self.token_counter = as_token_counter(token_counter or estimate_tokens)
        self.default_prompt = default_prompt
        self.markers = markers or MarkerParser()
        self.ingestor = ingestor or MessageIngestor()

    @property
    def budget(self) -> int:
        return self.config.token_budget

    async def assemble(self, trigger: RawMessage) -> AssembledWindow:
        """Build the chat log for one turn.

        Raises HistoryFetchError if a history page or attachment cannot be
        fetched; nothing is retried.
        """
        state = WindowState(messages=[trigger])
        entries: dict[int, ConversationEntry] = {trigger.id: await self._ingest(trigger)}

        pages = await self._expand(state, entries)
        dropped = self._contract(state, entries)
        if dropped:
            logger.debug("Dropped %d oldest messages to fit %d tokens", dropped, self.budget)

        chat_log = self.materialize(state, entries)
        return AssembledWindow(
            chat_log=chat_log,
            messages=list(state.messages),
            token_count=chat_log.token_count(self.token_counter),
            barrier_found=state.barrier_found,
            override_prompt=state.override_prompt,
            pages_fetched=pages,
        )

    def materialize(self, state: WindowState, entries: dict[int, ConversationEntry]) -> ChatLog:
        prompt = state.override_prompt or self.default_prompt
        return build_chat_log([entries[m.id] for m in state.messages], prompt)

    def measure(self, state: WindowState, entries: dict[int, ConversationEntry]) -> int:
        return self.materialize(state, entries).token_count(self.token_counter)

    # -- phases --

    async def _expand(self, state: WindowState, entries: dict[int, ConversationEntry]) -> int:
        """Prepend older pages until a stop condition. Returns pages fetched."""
        channel = state.oldest.channel
        # Oldest id seen so far, accepted or not; asides still move it back
        cursor = state.oldest.id
        for page_number in range(1, self.config.max_pages + 1):
            page = await self._fetch_page(channel, cursor)
            if not page:
                logger.debug("History exhausted after %d pages", page_number - 1)
                return page_number

            page_oldest = min(m.id for m in page)
            if page_oldest >= cursor:
                logger.warning("Page before %d holds nothing older, stopping", cursor)
                return page_number

            # Walk newest to oldest so a barrier cuts off everything older
            for message in sorted(page, key=lambda m: m.id, reverse=True):
                if message.id >= cursor or message.id in entries:
                    continue
                marker = self.markers.classify(message.content)
                if isinstance(marker, Aside):
                    logger.debug("Aside found, skipping message %d", message.id)
                    continue
                if isinstance(marker, Barrier):
                    logger.debug("Barrier found at message %d, stopping", message.id)
                    state.barrier_found = True
                    if marker.override_prompt:
                        state.override_prompt = marker.override_prompt
                    break
                entries[message.id] = await self._ingest(message)
                state.messages.insert(0, message)

            cursor = page_oldest

            tokens = self.measure(state, entries)
            if state.barrier_found or tokens > self.budget:
                return page_number

        logger.warning("Stopped paging after %d pages without a stop condition", self.config.max_pages)
        return self.config.max_pages

    def _contract(self, state: WindowState, entries: dict[int, ConversationEntry]) -> int:
        dropped = 0
        while len(state.messages) > 1 and self.measure(state, entries) > self.budget:
            removed = state.messages.pop(0)
            entries.pop(removed.id, None)
            dropped += 1
        return dropped

    # -- collaborators --

    async def _fetch_page(self, channel: str, before_id: int) -> list[RawMessage]:
        try:
            page = await self.history.fetch_before(channel, before_id, self.config.page_size)
        except HistoryFetchError:
            raise
        except Exception as e:
            raise HistoryFetchError(f"Failed to fetch history before {before_id}: {e}", channel=channel) from e
        return list(page)

    async def _ingest(self, message: RawMessage) -> ConversationEntry:
        try:
            return await self.ingestor.ingest(message)
        except Exception as e:
            raise HistoryFetchError(
                f"Failed to ingest message {message.id}: {e}", channel=message.channel
            ) from e
