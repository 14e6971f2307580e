# fixflow/core/logging_config.py
"""
Logging for the API process.

Everything goes to the root logger: one console handler and, unless
LOG_TO_FILE is off, a size-rotated fixflow.log under LOG_DIR. Calling
setup_logging() again (uvicorn reloads, tests importing the app) never
stacks duplicate handlers.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from fixflow.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = 'fixflow.log'
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Chatty third-party loggers; a session turn would otherwise log every HTTP hop
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "openai": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "redis": logging.WARNING,
}


def _has_console_handler(logger: logging.Logger) -> bool:
    return any(type(h) is logging.StreamHandler for h in logger.handlers)


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    target = str(path.resolve())
    return any(isinstance(h, RotatingFileHandler) and h.baseFilename == target for h in logger.handlers)


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None, to_file: Optional[bool] = None):
    """
    Configure the root logger.

    Arguments override the LOG_LEVEL, LOG_DIR and LOG_TO_FILE settings.

    Returns:
        The root logger
    """
    level = (level or settings.LOG_LEVEL).upper()
    to_file = settings.LOG_TO_FILE if to_file is None else to_file

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if not _has_console_handler(root_logger):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if to_file:
        directory = Path(log_dir or settings.LOG_DIR)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILE_NAME

        if not _has_file_handler(root_logger, log_file):
            file_handler = RotatingFileHandler(
                filename=str(log_file),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return root_logger
