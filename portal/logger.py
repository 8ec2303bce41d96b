"""
Logging for the internship portal: stdout always, a rotating file when LOG_FILE is set.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logger(name: str = "portal", level: Union[int, str] = "INFO",
                 log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``portal`` logger tree; safe to call once per app."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    # tests build several apps in one process
    logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=LOG_FILE_BYTES,
                                            backupCount=LOG_FILE_BACKUPS, encoding='utf-8'))

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
