"""Logging setup."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach one stream handler to the ``portsentinel`` logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log = logging.getLogger("portsentinel")
    log.setLevel(level)
    if not any(getattr(h, "_portsentinel", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._portsentinel = True  # type: ignore[attr-defined]
        log.addHandler(handler)
    return log
