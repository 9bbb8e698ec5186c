"""
PdfToolkit - Logger Module

This module sets up logging for the toolkit.
"""

import logging

from pdftoolkit.config import LOG_FORMAT, LOG_LEVEL, LOGGER_NAME


def setup_logger(
    log_level: int | None = None,
    log_format: str | None = None,
    logger_name: str | None = None,
) -> logging.Logger:
    """Set up and configure the toolkit logger.

    Args:
        log_level: Logging level to use (default: config.LOG_LEVEL)
        log_format: Logging format string (default: config.LOG_FORMAT)
        logger_name: Name for the logger (default: config.LOGGER_NAME)

    Returns:
        A configured Logger instance
    """
    if log_level is None:
        log_level = LOG_LEVEL
    if log_format is None:
        log_format = LOG_FORMAT
    if logger_name is None:
        logger_name = LOGGER_NAME

    log = logging.getLogger(logger_name)
    log.setLevel(log_level)

    # A library logger gets its own handler once; the root logger is left alone
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(log_format))
        log.addHandler(handler)

    return log


# Create a singleton logger instance
logger = setup_logger()
