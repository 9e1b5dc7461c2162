"""
Logging setup
Single stderr sink for loguru at the configured level
"""

import sys
from typing import Optional

from loguru import logger

from ..config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(level: Optional[str] = None) -> int:
    """Replace loguru's default sink; returns the new sink id"""
    logger.remove()
    return logger.add(sys.stderr, level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
