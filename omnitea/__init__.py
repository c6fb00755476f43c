"""omnitea: chat bot that assembles a token-bounded context window from channel history."""

from .bot import TurnDispatcher, TurnHandler, TurnStatus
from .config import load_config
from .core.assembler import WindowAssembler
from .core.chat_log import ChatLog
from .core.markers import classify
from .types import (
    AssembledWindow,
    ConversationEntry,
    ImageChunk,
    OmniteaConfig,
    RawMessage,
    Role,
    TextChunk,
)

__version__ = "0.1.0"

__all__ = [
    "TurnDispatcher",
    "TurnHandler",
    "TurnStatus",
    "WindowAssembler",
    "load_config",
    "classify",
    "AssembledWindow",
    "ChatLog",
    "ConversationEntry",
    "ImageChunk",
    "OmniteaConfig",
    "RawMessage",
    "Role",
    "TextChunk",
]
