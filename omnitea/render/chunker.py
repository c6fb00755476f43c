"""Split completion replies into text and image chunks, and into sendable segments."""

from __future__ import annotations

from typing import AsyncIterator

from ..patterns import CODE_FENCE, MATH_PATTERN
from ..types import DocumentRenderer, ImageChunk, RenderChunk, TextChunk


def is_math_line(line: str) -> bool:
    return MATH_PATTERN.search(line) is not None


async def render_iter(reply_text: str, renderer: DocumentRenderer) -> AsyncIterator[RenderChunk]:
    """Yield chunks in reply order, rendering math lines as they come up.

    Blank lines are dropped and runs of plain lines merge into one text
    chunk. A RenderError from the renderer propagates after every chunk
    before the failing line has been yielded.
    """
    pending: list[str] = []
    for line in reply_text.splitlines():
        if not line.strip():
            continue
        if not is_math_line(line):
            pending.append(line)
            continue
        if pending:
            yield TextChunk("\n".join(pending))
            pending = []
        paths = await renderer.render(line)
        yield ImageChunk(paths=tuple(paths), source=line)
    if pending:
        yield TextChunk("\n".join(pending))


async def render(reply_text: str, renderer: DocumentRenderer) -> list[RenderChunk]:
    return [chunk async for chunk in render_iter(reply_text, renderer)]


def split_message(text: str, limit: int = 2000, margin: int = 6, escape: bool = False) -> list[str]:
    """Split text into segments of at most ``limit - margin`` characters.

    With ``escape`` each segment is wrapped in code fences; the fences are
    what the margin leaves room for.
    """
    size = limit - margin
    if size <= 0:
        raise ValueError(f"limit ({limit}) must exceed margin ({margin})")
    segments = [text[i:i + size] for i in range(0, len(text), size)]
    if escape:
        segments = [f"{CODE_FENCE}{s}{CODE_FENCE}" for s in segments]
    return segments
