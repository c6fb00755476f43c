"""Control-marker classification of raw message text."""

from __future__ import annotations

from ..patterns import DEFAULT_ASIDE_PREFIX, DEFAULT_BARRIER_PREFIX
from ..types import Aside, Barrier, ControlMarker, NoMarker


def classify(
    text: str,
    barrier_prefix: str = DEFAULT_BARRIER_PREFIX,
    aside_prefix: str = DEFAULT_ASIDE_PREFIX,
) -> ControlMarker:
    """Classify message text as Barrier, Aside, or NoMarker.

    Prefixes are matched at the start of the left-trimmed text. Whatever
    follows a barrier prefix, trimmed, becomes the override prompt when it
    is not empty.
    """
    stripped = text.lstrip()
    if stripped.startswith(barrier_prefix):
        remainder = stripped[len(barrier_prefix):].strip()
        return Barrier(override_prompt=remainder or None)
    if stripped.startswith(aside_prefix):
        return Aside()
    return NoMarker()


class MarkerParser:
    """classify() bound to configured prefixes."""

    def __init__(
        self,
        barrier_prefix: str = DEFAULT_BARRIER_PREFIX,
        aside_prefix: str = DEFAULT_ASIDE_PREFIX,
    ) -> None:
        self.barrier_prefix = barrier_prefix
        self.aside_prefix = aside_prefix

    def classify(self, text: str) -> ControlMarker:
        return classify(text, self.barrier_prefix, self.aside_prefix)

    def is_barrier(self, text: str) -> bool:
        return isinstance(self.classify(text), Barrier)

    def is_aside(self, text: str) -> bool:
        return isinstance(self.classify(text), Aside)
