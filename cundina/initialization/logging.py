"""
Initialization - Logging Module.

Configures loguru: stderr at the configured level plus an optional
rotating file sink.
"""

import sys

from loguru import logger


def setup_logging(level: str = "INFO", log_file: str | None = "logs/cundina.log") -> None:
    """Configure logger with file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )
