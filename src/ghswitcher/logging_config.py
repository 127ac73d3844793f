"""Logging configuration for gh-switcher.

Environment Variables:
    GHS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: WARNING)
    GHS_LOG_FILE: Optional path of a rotating debug log
    GHS_LOG_MAX_SIZE: Max log file size in MB (default: 5)
    GHS_LOG_BACKUPS: Number of backup files to keep (default: 3)

Console output goes to stderr so it never mixes with command output that
scripts might parse.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

main_logger = logging.getLogger("ghswitcher")

DEFAULT_MAX_SIZE_MB = 5
DEFAULT_BACKUPS = 3


def get_log_level(verbose: bool = False) -> int:
    """Get log level from environment, or DEBUG when verbose."""
    if verbose:
        return logging.DEBUG
    level_str = os.environ.get("GHS_LOG_LEVEL", "WARNING").upper()
    return getattr(logging, level_str, logging.WARNING)


def _env_int(name: str, default: int) -> int:
    # non-numeric values fall back to the default
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw.isdigit() else default


def get_log_file() -> Path | None:
    """Get log file path from environment, if file logging is enabled."""
    path_str = os.environ.get("GHS_LOG_FILE", "").strip()
    return Path(path_str).expanduser() if path_str else None


def setup_logging(verbose: bool = False) -> None:
    """Configure the ghswitcher logger.

    Safe to call more than once; previous handlers are replaced.
    """
    for handler in list(main_logger.handlers):
        main_logger.removeHandler(handler)
        handler.close()

    console_level = get_log_level(verbose)
    main_logger.setLevel(logging.DEBUG)
    main_logger.propagate = False

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        show_time=False,
        rich_tracebacks=False,
    )
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    main_logger.addHandler(console_handler)

    log_file = get_log_file()
    if log_file is None:
        return

    max_size_mb = _env_int("GHS_LOG_MAX_SIZE", DEFAULT_MAX_SIZE_MB)
    backup_count = _env_int("GHS_LOG_BACKUPS", DEFAULT_BACKUPS)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        main_logger.warning("Cannot open log file %s: %s", log_file, e)
        return

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d | %(name)-24s | %(levelname)-7s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ),
    )
    main_logger.addHandler(file_handler)
