"""Process-wide logging configuration, applied once at startup."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d][%H:%M:%S"


def setup_logging(level: str | int = "DEBUG", stream=None, package: str = "omnitea") -> logging.Handler:
    """Attach a stderr handler to the root logger that only passes records
    from ``package`` and its submodules.

    Returns the handler so callers (tests) can detach it.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(logging.Filter(package))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
