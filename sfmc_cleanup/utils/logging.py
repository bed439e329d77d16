"""Logging configuration for the CLI."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def setup_logging(
    level: str = "INFO",
    verbose: bool = False,
    log_file: Optional[Path] = None,
) -> Optional[Path]:
    """Configure the root logger for one CLI invocation.

    Console output goes to stderr through rich. When ``log_file`` is a
    directory, a timestamped file is created inside it.

    Args:
        level: Console log level name
        verbose: Show paths and third-party library logs
        log_file: Log file or log directory, None for console only

    Returns:
        Path of the log file, if one was configured
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(logging.DEBUG if log_file else console_level)

    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_time=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(rich_handler)

    log_path = None
    if log_file is not None:
        log_path = Path(log_file)
        if log_path.is_dir() or not log_path.suffix:
            log_path.mkdir(parents=True, exist_ok=True)
            log_path = log_path / f"cleanup_{datetime.now():%Y%m%d_%H%M%S}.log"
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return log_path
