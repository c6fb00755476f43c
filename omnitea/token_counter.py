"""Token accounting for chat entries.

A TokenCounter wraps a text counter and prices whole conversation entries
the way chat completion endpoints bill them: role and content are tokenized
separately, plus a fixed per-entry overhead.
"""

from __future__ import annotations

import importlib
import logging
from typing import Callable, Iterable, Union

from .types import ConversationEntry

logger = logging.getLogger(__name__)

ENTRY_OVERHEAD = 3

# Used when tiktoken has no encoding registered for the configured model
FALLBACK_ENCODING = "cl100k_base"


def estimate_tokens(text: str) -> int:
    """Four characters per token, never less than one."""
    return max(1, len(text) // 4)


class TokenCounter:
    """Text token counter that also prices entries and chat logs."""

    __slots__ = ("count", "mode")

    def __init__(self, count: Callable[[str], int], mode: str = "custom") -> None:
        self.count = count
        self.mode = mode

    def __call__(self, text: str) -> int:
        return self.count(text)

    def entry(self, entry: ConversationEntry) -> int:
        return self.count(entry.role.value) + self.count(entry.content) + ENTRY_OVERHEAD

    def entries(self, entries: Iterable[ConversationEntry]) -> int:
        return sum(self.entry(e) for e in entries)

    def __repr__(self) -> str:
        return f"TokenCounter({self.mode!r})"


CounterLike = Union[TokenCounter, Callable[[str], int]]


def as_token_counter(counter: CounterLike) -> TokenCounter:
    if isinstance(counter, TokenCounter):
        return counter
    return TokenCounter(counter)


def _tiktoken_count(model: str) -> Callable[[str], int]:
    try:
        import tiktoken
    except ImportError as e:
        raise ImportError(
            "The tiktoken counter needs the optional dependency: pip install omnitea[tiktoken]"
        ) from e
    try:
        enc = tiktoken.encoding_for_model(model)
    except KeyError:
        logger.debug("No tiktoken encoding for model %s, using %s", model, FALLBACK_ENCODING)
        enc = tiktoken.get_encoding(FALLBACK_ENCODING)
    return lambda text: len(enc.encode(text))


def _import_count(path: str) -> Callable[[str], int]:
    module_path, sep, func_name = path.rpartition(":")
    if not sep or not module_path or not func_name:
        raise ValueError(f"Invalid callable counter: {path!r}. Expected callable:module.path:func")
    return getattr(importlib.import_module(module_path), func_name)


def create_token_counter(mode: str = "estimate", model: str = "gpt-3.5-turbo") -> TokenCounter:
    """Build the counter named by ``assembler.token_counter``.

    Modes:
        "estimate" - estimate_tokens, no dependencies
        "tiktoken" - the encoding of ``model`` (the configured completion model)
        "callable:module.path:func" - any str -> int function
    """
    if mode == "estimate":
        return TokenCounter(estimate_tokens, mode)
    if mode == "tiktoken":
        return TokenCounter(_tiktoken_count(model), f"tiktoken:{model}")
    if mode.startswith("callable:"):
        return TokenCounter(_import_count(mode[len("callable:"):]), mode)
    raise ValueError(f"Unknown token counter mode: {mode}")
