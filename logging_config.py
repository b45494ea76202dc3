"""
Logging setup for the Drude transport demo.

Every module logs through ``logging.getLogger(__name__)``; this module
decides where those records end up.  Call :func:`setup_logging` once from
the entry point before the window opens.
"""
import logging
import sys
from typing import Optional

APP_LOGGER_NAME = 'drude'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route engine, config and UI log records to stdout and, optionally, a file.

    Handlers hang off the root logger because the modules are top-level
    (``simulation``, ``config``, ``demo``, ...) and share no package
    logger.  Calling this again replaces the previous handlers.

    Args:
        level: Threshold for both handlers, e.g. ``logging.DEBUG`` under ``--debug``.
        log_file: Optional path; the file is truncated on every start.

    Returns:
        The application logger, ``drude``.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    _attach(root, logging.StreamHandler(sys.stdout), level, formatter)
    if log_file:
        _attach(root, logging.FileHandler(log_file, mode='w', encoding='utf-8'), level, formatter)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    destination = f"stdout and {log_file}" if log_file else "stdout"
    app_logger.info(f"Logging initialized at {logging.getLevelName(level)} to {destination}")
    return app_logger
