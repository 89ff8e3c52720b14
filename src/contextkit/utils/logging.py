"""Logging configuration for hosts embedding the context engine.

Every module logs through ``logging.getLogger(__name__)``, so all records
land under the ``contextkit`` logger. :func:`configure_logging` attaches
handlers to that logger only; the host's root configuration is left alone.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..settings import ContextSettings

__all__ = ["PACKAGE_LOGGER", "LOG_FILE_NAME", "configure_logging"]

PACKAGE_LOGGER = "contextkit"
LOG_FILE_NAME = "contextkit.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_INSTALLED: list[logging.Handler] = []


def configure_logging(
    settings: ContextSettings | None = None,
    *,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path | None:
    """Route ``contextkit`` records to the console and an optional log file.

    ``settings.debug_logging`` selects ``DEBUG`` over ``INFO``, which also
    surfaces the per-stage timing records of the engine. A rotating file is
    written only when ``settings.log_dir`` is set. Calling again replaces the
    handlers installed by the previous call.

    Returns:
        The log file path, or ``None`` when no file handler was installed.
    """
    debug = bool(settings and settings.debug_logging)
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in _INSTALLED:
        logger.removeHandler(handler)
        handler.close()
    _INSTALLED.clear()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    log_path: Path | None = None
    if settings is not None and settings.log_dir:
        target_dir = Path(settings.log_dir).expanduser()
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / LOG_FILE_NAME
        _INSTALLED.append(
            logging.handlers.RotatingFileHandler(
                log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )
    if console:
        _INSTALLED.append(logging.StreamHandler())

    for handler in _INSTALLED:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    # Records are handled here; avoid a second copy through the root logger.
    logger.propagate = not _INSTALLED
    return log_path
