"""
Logging configuration.

Configures loguru sinks for the indexer process.
Sets up log rotation and retention policies.
"""

import sys
from pathlib import Path

from loguru import logger


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> None:
    """Configure stderr and rotating file sinks."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        str(Path(log_dir) / "indexer.log"),
        rotation="1 day",
        retention="7 days",
        level=level,
        encoding="utf-8",
    )

    logger.info("Starting blockchain indexer...")
