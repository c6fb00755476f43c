"""Literal control prefixes, math detection pattern, and the default prompt.

Kept in a standalone module so config.py and the core modules can share
them without importing each other.
"""

import re

DEFAULT_BARRIER_PREFIX = "|b|"
DEFAULT_ASIDE_PREFIX = "|a|"

# Text between two dollar signs, e.g. "$x^2$"
MATH_PATTERN: re.Pattern = re.compile(r"\$([^$]+)\$")

CODE_FENCE = "```"

DEFAULT_SYSTEM_PROMPT = (
    "You are Omnitea, a friendly assistant taking part in a group chat. "
    "Each user message is prefixed with the name of the person speaking. "
    "Answer concisely. Write mathematics inline between dollar signs, "
    "for example $e^{i\\pi} + 1 = 0$, so it can be rendered."
)
