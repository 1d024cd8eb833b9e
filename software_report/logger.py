"""
Run Logging

All loggers of the package are children of the 'software_report' logger, which
owns the only handlers: a DEBUG file handler in the log folder and an INFO
console handler.

The scheduled task calls configure_logging() once with the log folder of the
run, before anything is logged. Modules only ask for their logger:

    from software_report.logger import get_logger
    logger = get_logger(__name__)

Until configure_logging() is called, the folder defaults to LOG_FOLDER. The
log file is opened on the first record, so importing the package creates no
folder.
"""

import logging
from pathlib import Path
from typing import Optional

from software_report.config import LOGS_DIR, LOG_FILENAME

ROOT_LOGGER_NAME = "software_report"

_FORMATTER = logging.Formatter(
    fmt='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


class _RunFileHandler(logging.FileHandler):
    """File handler that creates the log folder when the file is first opened."""

    def _open(self):
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()


def configure_logging(logs_dir: Optional[str] = None) -> logging.Logger:
    """
    Point the package logging at the given log folder.

    Handlers installed by an earlier call are closed and replaced, so every
    module logger writes to the same file afterwards.

    Args:
        logs_dir: Folder receiving the log file, defaults to LOG_FOLDER

    Returns:
        The package root logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    # File handler (all levels)
    file_handler = _RunFileHandler(
        Path(logs_dir or LOGS_DIR) / LOG_FILENAME, mode='a', encoding='utf-8', delay=True
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(_FORMATTER)
    root.addHandler(file_handler)

    # Console handler (INFO and above)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(_FORMATTER)
    root.addHandler(console_handler)

    return root


def log_file_path() -> Optional[Path]:
    """Path of the current log file, None when logging is not configured."""
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def get_logger(name: str) -> logging.Logger:
    """
    Get the logger for a module of the package.

    Names outside the package are placed under it, so their records reach
    the run's handlers too.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        configure_logging()

    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
