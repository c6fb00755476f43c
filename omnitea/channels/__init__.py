from .memory import MemoryChannel, SentItem

__all__ = ["MemoryChannel", "SentItem"]
