"""Structured logging for the decoder and its collaborators."""

import logging
import os
import sys
from typing import Optional, TextIO

from dotenv import load_dotenv

load_dotenv()

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a pre-configured logger for the given module name."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))
    return logger


def set_log_level(level: str, *names: str, stream: Optional[TextIO] = None) -> None:
    """Override the level of module loggers, and optionally where they write.

    Command-line entry points pass ``stream=sys.stderr`` so that log lines never
    mix with the document printed on stdout.
    """
    resolved = getattr(logging, level.upper(), logging.INFO)
    for name in names:
        logger = get_logger(name)
        logger.setLevel(resolved)
        if stream is not None:
            for handler in logger.handlers:
                if isinstance(handler, logging.StreamHandler):
                    handler.setStream(stream)
