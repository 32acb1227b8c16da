"""Loguru sink configuration"""

import sys

from loguru import logger

from ..config import Settings, settings


def setup_logging(config: Settings | None = None) -> None:
    """Replace loguru's default sink with one using configured level and format

    Args:
        config: Settings to read log_level/log_format from (defaults to global)
    """
    config = config or settings
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper(), format=config.log_format)
    logger.debug(f"Logging configured at level {config.log_level.upper()}")
