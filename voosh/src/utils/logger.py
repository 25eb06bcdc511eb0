"""
Voosh - Logging
=================
Logger factory shared by every Voosh module.

Level resolution (first match wins):
  • ``LOG_LEVEL`` environment variable (``DEBUG``, ``INFO``, ...)
  • ``ENV`` mode, the same variable ``Settings.ENV`` reads:
      ``"dev"``  → DEBUG, ``"prod"`` → WARNING

The HTTP and MongoDB drivers log one line per request at INFO; they are
held at WARNING via ``quiet_third_party()`` so retrieval logs stay
readable.

Usage:
    from voosh.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Something happened")
"""

import logging
import os
import sys

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "motor")


def _default_level() -> int:
    explicit = os.getenv("LOG_LEVEL", "").strip().upper()
    if explicit:
        level = logging.getLevelName(explicit)
        if isinstance(level, int):
            return level
    return _ENV_LEVEL_MAP.get(os.getenv("ENV", "dev"), logging.INFO)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a named logger writing to stdout in the Voosh format.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level; when *None* it comes from ``LOG_LEVEL`` / ``ENV``.
    """
    logger = logging.getLogger(name)

    # Handlers are attached once per name
    if not logger.handlers:
        resolved_level = level if level is not None else _default_level()
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def quiet_third_party(level: int = logging.WARNING) -> None:
    """Raise the threshold of chatty driver loggers (per-request INFO lines)."""
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)
