from __future__ import annotations

import logging
from typing import List, Optional, Union

PACKAGE_LOGGER = "aim_engine"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Silent until the host application (or init_logging) attaches a handler.
logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def _level_number(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def _engine_handlers(logger: logging.Logger) -> List[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "aim_engine_owned", False)]


def init_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Attach console and optional file output to the engine's package logger.

    Parameters
    ----------
    level: str or int
        Logging level name or number. Unknown names fall back to INFO.
    log_file: Optional[str]
        If provided, engine logs are also written to this file (truncated).
    propagate: bool
        Also pass records up to the root logger's handlers.

    Only the ``aim_engine`` logger is configured; the root logger is left to
    the host application. Calling this again replaces the handlers installed
    by the previous call and leaves any others in place.
    """
    numeric_level = _level_number(level)
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in _engine_handlers(logger):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w"))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        handler.aim_engine_owned = True
        logger.addHandler(handler)

    logger.setLevel(numeric_level)
    logger.propagate = propagate
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the package namespace; modules pass ``__name__``."""
    if not name:
        return logging.getLogger(PACKAGE_LOGGER)
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
