from .chunker import is_math_line, render, render_iter, split_message
from .renderers import LatexRenderer, PandocRenderer, cleanup_paths, create_renderer

__all__ = [
    "LatexRenderer",
    "PandocRenderer",
    "cleanup_paths",
    "create_renderer",
    "is_math_line",
    "render",
    "render_iter",
    "split_message",
]
