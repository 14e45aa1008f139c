"""
Logging setup for the metrictree package.

Library modules only ask for loggers through get_logger(); handlers are
installed once, by whoever runs the package (the CLI calls setup_logging()).
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = 'metrictree'

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
CONSOLE_DATEFMT = '%H:%M:%S'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
FILE_DATEFMT = '%Y-%m-%d %H:%M:%S'

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class ColoredFormatter(logging.Formatter):
    """Console formatter that wraps the level name in an ANSI color."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        # Work on a copy so file handlers keep the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _resolve_level(log_level: Optional[str]) -> int:
    name = (log_level or os.environ.get('METRICTREE_LOG_LEVEL', 'INFO')).upper()
    return getattr(logging, name, logging.INFO)


def _console_handler(level: int, enable_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    formatter_class = ColoredFormatter if enable_colors and sys.stdout.isatty() else logging.Formatter
    handler.setFormatter(formatter_class(CONSOLE_FORMAT, CONSOLE_DATEFMT))
    return handler


def _file_handler(log_file: str, level: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, FILE_DATEFMT))
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_colors: bool = True
) -> logging.Logger:
    """
    Install handlers on the package logger, replacing (and closing) any
    installed by an earlier call.

    Args:
        log_level: Level name; falls back to METRICTREE_LOG_LEVEL, then INFO
        log_file: Optional path for a rotating log file
        enable_console: Whether to log to stdout
        enable_colors: Whether to color stdout output when it is a TTY

    Returns:
        The package logger
    """
    level = _resolve_level(log_level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if enable_console:
        logger.addHandler(_console_handler(level, enable_colors))
    if log_file:
        logger.addHandler(_file_handler(log_file, level))
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    # Our handlers already write everything; keep records off the root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger below the package logger for a module name (usually __name__)."""
    if name == PACKAGE_LOGGER or name.startswith(f'{PACKAGE_LOGGER}.'):
        return logging.getLogger(name)
    return logging.getLogger(f'{PACKAGE_LOGGER}.{name}')
