# pinchat/core/logging.py

import logging
import os
import sys


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging() -> None:
    """
    Configure logging for the relay.

    - LOG_LEVEL sets the level of the ``pinchat`` loggers (default INFO);
      posted messages are logged at DEBUG by the coordinator
    - LOG_FORMAT overrides the line format
    - Output goes to stdout, unless uvicorn already installed handlers
    """
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.getLogger("pinchat").setLevel(level)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(os.getenv("LOG_FORMAT", DEFAULT_FORMAT)))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)

    # One access line per WebSocket upgrade and per frame-level ping is noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the app's configuration, e.g. ``get_logger(__name__)``."""
    return logging.getLogger(name)
