# core/logger.py
import logging
from sqs_transport.core.config import settings


def _resolve_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    return logging.DEBUG if settings.DEBUG else logging.INFO


logger = logging.getLogger("sqs-transport")
logger.setLevel(_resolve_level())
logger.propagate = False

# Console handler with a simple, structured-ish format
if not logger.handlers:
    _console = logging.StreamHandler()
    _console.setLevel(_resolve_level())
    _console.setFormatter(logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    ))
    logger.addHandler(_console)
