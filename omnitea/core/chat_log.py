"""ChatLog: immutable, chronologically ordered sequence of conversation entries."""

from __future__ import annotations

from typing import Iterator

from ..token_counter import CounterLike, as_token_counter
from ..types import ConversationEntry, Role


class ChatLog:
    """Ordered chat entries, oldest first.

    Every mutator returns a new log; the receiver is never changed.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: tuple[ConversationEntry, ...] | list[ConversationEntry] = ()) -> None:
        self._entries = tuple(entries)

    # -- builders --

    def add(self, role: Role, content: str) -> ChatLog:
        return ChatLog(self._entries + (ConversationEntry(role=role, content=content),))

    def append(self, entry: ConversationEntry) -> ChatLog:
        return ChatLog(self._entries + (entry,))

    def system(self, content: str) -> ChatLog:
        return self.add(Role.SYSTEM, content)

    def user(self, content: str) -> ChatLog:
        return self.add(Role.USER, content)

    def assistant(self, content: str) -> ChatLog:
        return self.add(Role.ASSISTANT, content)

    def without_first(self) -> ChatLog:
        return ChatLog(self._entries[1:])

    # -- accounting --

    def token_count(self, counter: CounterLike) -> int:
        return as_token_counter(counter).entries(self._entries)

    def system_entries(self) -> list[ConversationEntry]:
        return [e for e in self._entries if e.role == Role.SYSTEM]

    def to_payload(self) -> list[dict]:
        """Ordered ``messages`` list for a chat completion request."""
        return [e.to_dict() for e in self._entries]

    # -- sequence protocol --

    @property
    def entries(self) -> tuple[ConversationEntry, ...]:
        return self._entries

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> ConversationEntry:
        return self._entries[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChatLog):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"ChatLog({list(self._entries)!r})"
