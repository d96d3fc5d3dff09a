"""Logging setup for the API process."""
import logging

LOGGER_NAME = "crudhub"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger."""

    logger = logging.getLogger(LOGGER_NAME)
    if not any(getattr(h, "_crudhub", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._crudhub = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
