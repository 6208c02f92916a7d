"""
Logging setup shared by the relay server and the call client.

Everything logs through the "omnibot" logger: one console handler on stdout
and, when the log directory is writable, a size-rotated file. The websockets
and google-genai loggers are held at WARNING unless DEBUG is requested, since
they log every frame of a live session.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from omnibot.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE_NAME = "omnibot.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

NOISY_LOGGERS = ("websockets", "google_genai", "httpx")


def configure_logging(level: str = LOG_LEVEL, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Attach console and rotating file handlers to the application logger.

    Calling it again replaces the handlers instead of stacking new ones.

    Args:
        level: Log level name, case-insensitive; unknown names fall back to INFO
        log_dir: Directory for the rotating log file (defaults to LOG_DIR)

    Returns:
        logging.Logger: The "omnibot" logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    target_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / LOG_FILE_NAME,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
        )
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {target_dir}: {e}")
    else:
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    third_party_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logger.propagate = False
    logger.debug(f"Logging configured at {logging.getLevelName(numeric_level)}")
    return logger
