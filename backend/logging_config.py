"""Logging setup shared by the GPMView server and CLI tools.

Every entry point gets a console handler plus a rotating file under the log
directory. ``GPMVIEW_LOG_LEVEL`` and ``GPMVIEW_LOG_DIR`` override the level
and location.
"""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def resolve_level(level: str | None = None) -> int:
    """Map a level name to a logging constant; unknown names fall back to INFO."""
    name = level or os.environ.get("GPMVIEW_LOG_LEVEL") or "INFO"
    resolved = logging.getLevelName(name.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def log_dir() -> str:
    path = os.environ.get("GPMVIEW_LOG_DIR") or os.path.join(os.path.dirname(__file__), "logs")
    os.makedirs(path, exist_ok=True)
    return path


def _handlers(log_name: str, file_level: int) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    # Console stays at INFO; DEBUG only reaches the file.
    console = logging.StreamHandler()
    console.setLevel(max(logging.INFO, file_level))

    rotating = RotatingFileHandler(
        os.path.join(log_dir(), f"{log_name}.log"),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
    )
    rotating.setLevel(file_level)

    for handler in (console, rotating):
        handler.setFormatter(formatter)
    return [console, rotating]


def setup_logging(name: str, level: str | None = None, log_name: str = "gpmview") -> logging.Logger:
    """Return ``name``'s logger with console and ``{log_name}.log`` handlers.

    Calling it again for a configured logger returns it unchanged.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = resolve_level(level)
    logger.setLevel(log_level)
    for handler in _handlers(log_name, log_level):
        logger.addHandler(handler)
    return logger
