"""Logging configuration for deadbranch."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE_NAME = "deadbranch.log"


def setup_logging(verbose: bool = False, debug: bool = False, log_dir: Optional[Path] = None) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages and also write them to a log file
        log_dir: Directory for the debug log file (defaults to ~/.deadbranch)
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger("deadbranch")
    root_logger.setLevel(level)
    root_logger.propagate = False

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=debug,
        show_path=debug,
        markup=False,
        rich_tracebacks=debug,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if debug:
        log_dir = log_dir or Path.home() / ".deadbranch"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            root_logger.warning("Could not create log directory %s: %s", log_dir, err)
            return
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode="w")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a deadbranch module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger parented under the "deadbranch" logger
    """
    if not name.startswith("deadbranch"):
        name = f"deadbranch.{name}"
    return logging.getLogger(name)
