from __future__ import annotations

import logging
import os

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_CONFIGURED = False


def resolve_level(level: str | int | None = None) -> int:
    """``POLYTAX_LOG_LEVEL`` wins over ``LOG_LEVEL``; unknown names fall back to INFO."""
    if level is None:
        level = os.getenv("POLYTAX_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO"
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = resolve_level(level)
    logging.basicConfig(level=resolved, format=_DEFAULT_FORMAT)
    # SQL echo only when the replay itself is being debugged.
    if resolved > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
