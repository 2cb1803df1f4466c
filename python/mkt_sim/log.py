"""Logging setup (loguru).

Modules log through ``from loguru import logger``; this only decides where
records go. Call once at process start.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[str | Path] = None,
    rotation: str = "1 day",
    retention: str = "30 days",
) -> None:
    """Route loguru to stderr and, if `log_dir` is given, to daily files."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=_FORMAT)

    if log_dir is not None:
        out = Path(log_dir)
        out.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=str(out / "{time:YYYY-MM-DD}.log"),
            rotation=rotation,
            retention=retention,
            level=level,
            format=_FORMAT,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    logger.debug("logging configured (level={})", level)
