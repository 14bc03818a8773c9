"""Logging setup shared by the search engine.

Every module asks for a child of the ``ifs`` logger; the first call attaches a
console handler so that library use without any logging configuration still
prints warnings and errors.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "ifs"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the ``ifs`` logger, or its child ``ifs.<name>``."""
    root = logging.getLogger(LOGGER_NAME)

    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(logging.INFO)

    if not name:
        return root
    return root.getChild(name)


def set_level(level: int) -> None:
    get_logger().setLevel(level)
