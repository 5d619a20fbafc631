"""
Logging utilities for the invoicing backend.

NEVER log:
- password hashes or plain passwords
- Supabase Auth tokens, API keys or database URLs with credentials
- uploaded file contents

Acceptable: ids, statuses, counts, error codes.
"""

import logging
from typing import Optional

from backend.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, at LOG_LEVEL by default."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger for the specified module.

    Records propagate to the root handler installed by configure_logging().

    Usage:
        >>> from backend.utils.logging import get_logger
        >>> logger = get_logger(__name__)
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger
