"""All dataclasses, Protocols, and error types for omnitea."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal, Protocol, Sequence, Union, runtime_checkable

if TYPE_CHECKING:
    from .core.chat_log import ChatLog


# ---------------------------------------------------------------------------
# Conversation entries
# ---------------------------------------------------------------------------

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationEntry:
    """A single role-tagged entry of a chat log."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


# ---------------------------------------------------------------------------
# Platform messages (owned by the messaging platform, read-only here)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Author:
    id: int
    name: str
    display_name: str | None = None  # guild nickname, when the platform has one

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class Attachment:
    url: str
    filename: str = ""

    @property
    def name(self) -> str:
        return self.filename or self.url.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class RawMessage:
    id: int
    author: Author
    channel: str
    content: str
    attachments: tuple[Attachment, ...] = ()
    is_from_self: bool = False
    is_private: bool = False  # direct message rather than a named channel


# ---------------------------------------------------------------------------
# Control markers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Barrier:
    """Stops backward expansion; optionally replaces the system prompt."""
    override_prompt: str | None = None


@dataclass(frozen=True)
class Aside:
    """Excluded from context entirely."""


@dataclass(frozen=True)
class NoMarker:
    """Ordinary message."""


ControlMarker = Union[Barrier, Aside, NoMarker]


# ---------------------------------------------------------------------------
# Window assembly
# ---------------------------------------------------------------------------

@dataclass
class WindowState:
    """Working set of one turn: chronological messages plus barrier state."""
    messages: list[RawMessage] = field(default_factory=list)
    barrier_found: bool = False
    override_prompt: str | None = None

    @property
    def oldest(self) -> RawMessage:
        return self.messages[0]


@dataclass
class AssembledWindow:
    """Result of assembling the context for one turn."""
    chat_log: ChatLog
    messages: list[RawMessage]
    token_count: int
    barrier_found: bool = False
    override_prompt: str | None = None
    pages_fetched: int = 0


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class ImageChunk:
    paths: tuple[str, ...]
    source: str  # the text the images were rendered from


RenderChunk = Union[TextChunk, ImageChunk]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class OmniteaError(Exception):
    """Base class for turn-level failures."""


class HistoryFetchError(OmniteaError):
    def __init__(self, message: str, channel: str | None = None):
        super().__init__(message)
        self.channel = channel


class CompletionError(OmniteaError):
    def __init__(
        self,
        message: str,
        provider: str,
        kind: Literal["transport", "empty"] = "transport",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.kind = kind
        self.status_code = status_code


class RenderError(OmniteaError):
    def __init__(self, message: str, command: str | None = None, returncode: int | None = None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class SendError(OmniteaError):
    pass


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class HistoryProvider(Protocol):
    async def fetch_before(
        self, channel: str, before_id: int, limit: int
    ) -> Sequence[RawMessage]: ...


@runtime_checkable
class OutboundSender(Protocol):
    async def send(self, channel: str, text: str) -> None: ...

    async def send_attachment(self, channel: str, path: str) -> None: ...

    async def react(self, channel: str, message_id: int, emoji: str) -> None: ...


@runtime_checkable
class DocumentRenderer(Protocol):
    async def render(self, text: str) -> list[str]: ...


@runtime_checkable
class AttachmentFetcher(Protocol):
    async def fetch_text(self, attachment: Attachment) -> str: ...


@runtime_checkable
class CompletionProvider(Protocol):
    async def complete(self, chat_log: ChatLog) -> ConversationEntry: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class AssemblerConfig:
    context_window: int = 4096
    reply_reserve: int = 500
    page_size: int = 10
    max_pages: int = 1000  # hard stop for the pagination loop
    token_counter: str = "estimate"

    @property
    def token_budget(self) -> int:
        return self.context_window - self.reply_reserve


@dataclass
class MarkerConfig:
    barrier_prefix: str = "|b|"
    aside_prefix: str = "|a|"
    barrier_reaction: str = "✅"
    aside_reaction: str = "\U0001f507"


@dataclass
class CompletionConfig:
    provider: str = "openai"
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-3.5-turbo"
    api_key: str = ""
    timeout: float = 120.0


@dataclass
class RendererConfig:
    strategy: str = "markdown"  # "markdown" (pandoc) or "latex"
    work_dir: str = "."
    density: int = 300
    echo_source: bool = True  # send the rendered text as a code block after the images


@dataclass
class PlatformConfig:
    token: str = ""
    channel_name: str = "omnitea"
    message_limit: int = 2000
    message_margin: int = 6  # room for the ``` fences around escaped text


@dataclass
class OmniteaConfig:
    version: str = "1.0"
    system_prompt: str = ""
    prompt_file: str | None = None
    log_level: str = "DEBUG"
    assembler: AssemblerConfig = field(default_factory=AssemblerConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    renderer: RendererConfig = field(default_factory=RendererConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)

