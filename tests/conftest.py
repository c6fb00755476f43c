"""Shared fixtures for omnitea tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from omnitea.channels.memory import MemoryChannel
from omnitea.config import load_config
from omnitea.types import (
    Attachment,
    Author,
    ConversationEntry,
    OmniteaConfig,
    RenderError,
    Role,
)


@pytest.fixture
def alice() -> Author:
    return Author(id=1, name="alice")


@pytest.fixture
def bob() -> Author:
    return Author(id=2, name="bob", display_name="Bobby")


@pytest.fixture
def channel() -> MemoryChannel:
    return MemoryChannel(name="omnitea")


@pytest.fixture
def config() -> OmniteaConfig:
    return load_config(config_dict={"system_prompt": "SYS"}, env={})


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def char_counter(text: str) -> int:
    """One token per character; keeps budget arithmetic in tests exact."""
    return len(text)


class FakeCompletionProvider:
    """Completion provider that returns canned replies (no API calls)."""

    def __init__(self, replies: list[str] | None = None, error: Exception | None = None):
        self.replies = replies or ["Hello! I'm a test assistant."]
        self.error = error
        self.calls = []

    async def complete(self, chat_log) -> ConversationEntry:
        self.calls.append(chat_log)
        if self.error is not None:
            raise self.error
        idx = min(len(self.calls) - 1, len(self.replies) - 1)
        return ConversationEntry(role=Role.ASSISTANT, content=self.replies[idx])


class FakeRenderer:
    """Renderer that writes placeholder PNGs into a directory."""

    def __init__(self, work_dir: Path, pages: int = 1, fail_on: str | None = None):
        self.work_dir = Path(work_dir)
        self.pages = pages
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def render(self, text: str) -> list[str]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise RenderError("pandoc failed (43): ! Undefined control sequence.", command="pandoc", returncode=43)
        paths = []
        for page in range(self.pages):
            path = self.work_dir / f"render{len(self.calls)}-{page}.png"
            path.write_bytes(b"\x89PNG")
            paths.append(str(path))
        return paths


class FakeAttachmentFetcher:
    def __init__(self, bodies: dict[str, str] | None = None, error: Exception | None = None):
        self.bodies = bodies or {}
        self.error = error
        self.calls: list[Attachment] = []

    async def fetch_text(self, attachment: Attachment) -> str:
        self.calls.append(attachment)
        if self.error is not None:
            raise self.error
        return self.bodies.get(attachment.url, "")
