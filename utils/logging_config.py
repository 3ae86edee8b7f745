"""
Centralized logging configuration for the artist raffle
Provides console logging with an optional rotating log file
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
import os

# Loggers outside the package tree that raffle operations log through
SHARED_LOGGERS = ('utils',)


def _build_handlers(numeric_level, log_file):
    """Console handler plus an optional rotating file handler"""
    detailed_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    handlers = [console_handler]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # 10 MB per file, keep 5 backups
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        handlers.append(file_handler)

    return handlers


def setup_logging(app_name='artist_raffle', log_level=None, log_file=None):
    """
    Setup application logging with console and optional file handlers

    The same handlers go to the package logger and to the shared helper
    loggers (error_helpers), so rejected requests and database errors land
    in the same console format and log file as everything else.

    Args:
        app_name: Package logger to configure
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (enables file logging)

    Returns:
        logging.Logger: Configured package logger
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
    handlers = _build_handlers(numeric_level, log_file)

    for name in (app_name,) + SHARED_LOGGERS:
        configured = logging.getLogger(name)
        configured.setLevel(numeric_level)

        # Close handlers from an earlier setup so a reconfigure doesn't duplicate output
        for old in list(configured.handlers):
            configured.removeHandler(old)
            old.close()

        for handler in handlers:
            configured.addHandler(handler)
        configured.propagate = False

    logger = logging.getLogger(app_name)
    if log_file:
        logger.info(f"File logging enabled: {log_file}")
    return logger
