"""
Logging configuration.
Installs the loguru sinks used by the CLI and the scheduler.
Logs go to stderr; stdout carries command output.
"""

import sys
from typing import Optional

from loguru import logger

DEFAULT_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format: str = DEFAULT_LOG_FORMAT,
) -> None:
    """
    Replace loguru's default handler with the export sinks.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path of a rotating log file
        format: Log message format
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=format,
        level=level.upper(),
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format=format,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            encoding="utf-8",
        )
        logger.debug(f"File logging enabled: {log_file}")
