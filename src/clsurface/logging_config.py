"""
Logging setup for the ``clsurface`` logger.

Library modules only create ``logging.getLogger(__name__)`` loggers. Handlers
are attached here, by the CLI or by an application embedding the surface
builder, so per-pass debug output can be routed to the console and a file.
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Route ``clsurface`` log records to stdout and optionally to a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Threshold for the package logger, e.g. logging.DEBUG to see
            every subdivision pass and integrity check.
        log_file: Optional path of a log file, overwritten on each call.
    """
    logger = logging.getLogger("clsurface")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info("Logging initialized.")
