"""Logging initialization utilities using loguru."""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys

from loguru import logger

from infrastructure.utils import get_app_data_dir


def init_logging(log_dir: str | None = None, console_level: str | None = "WARNING") -> None:
    """Initialize rotating file logging under the given directory.

    A stderr sink is added at `console_level` unless it is None.
    """
    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "app_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level="INFO",
    )
    if console_level:
        logger.add(sys.stderr, level=console_level, format="{level: <8} | {message}")


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(get_app_data_dir() / "logs")


def open_file_in_default_app(file_path: str) -> bool:
    """Open a file in the default application for its type."""
    try:
        if os.name == "nt":  # Windows
            os.startfile(file_path)  # type: ignore[attr-defined]
        elif sys.platform == "darwin":
            subprocess.run(["open", file_path], check=True)
        else:
            subprocess.run(["xdg-open", file_path], check=True)
        return True
    except (OSError, subprocess.CalledProcessError) as ex:
        logger.warning("Could not open {}: {}", file_path, ex)
        return False
