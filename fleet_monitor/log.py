"""Logging setup (loguru).

Modules log through `from loguru import logger`; entrypoints call
`setup_logging()` once to install console/file sinks.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Union[str, Path]] = None,
    json_logs: bool = False,
) -> None:
    """Replace loguru's default handler with the project sinks."""
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, colorize=True)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        logger.add(
            path / "fleet_monitor.log",
            level=level,
            format=_FILE_FORMAT,
            rotation="5 MB",
            retention="7 days",
            compression="zip",
        )


__all__ = ["setup_logging"]
