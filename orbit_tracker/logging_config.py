"""
Logging Configuration

Library modules log through ``logging.getLogger(__name__)`` and so sit under
the ``orbit_tracker`` logger. configure_logging() attaches output handlers to
that package logger only; the root logger and other libraries' loggers are
left to the host application.

Usage:
    from orbit_tracker.logging_config import configure_logging

    configure_logging(logging.DEBUG)
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "orbit_tracker"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so a second call replaces them
_HANDLER_ATTR = "_orbit_tracker_handler"


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Send the package's log records to stdout and, optionally, a file.

    Calling it again replaces the handlers from the previous call, so
    repeated configuration never duplicates output. Handlers added by the
    host application are kept.

    Parameters
    ----------
    level : int
        Level for the ``orbit_tracker`` logger (e.g. logging.DEBUG)
    log_file : str, optional
        Path to an additional log file

    Returns
    -------
    logging.Logger
        The configured package logger
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_ATTR, True)
        package_logger.addHandler(handler)

    package_logger.propagate = False
    return package_logger
