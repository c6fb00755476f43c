from .base import BaseCompletionProvider
from .openai import OpenAIChatProvider

__all__ = ["BaseCompletionProvider", "OpenAIChatProvider", "create_provider"]


def create_provider(config) -> BaseCompletionProvider:
    """Build the completion provider named in a CompletionConfig."""
    if config.provider == "openai":
        return OpenAIChatProvider(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )
    raise ValueError(f"Unknown completion provider: {config.provider}")
