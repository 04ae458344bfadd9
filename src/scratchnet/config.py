"""
config.py
~~~~~~~~~

Logging configuration for programs built on the library.

The library itself only creates module loggers; applications call
``configure_logging`` once at startup.
"""

import os
import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> int:
    """
    Set up logging based on environment.

    Args:
        level: Level name such as 'DEBUG'. Defaults to the LOG_LEVEL
            environment variable, then INFO.

    Returns:
        int: The numeric level applied to the 'scratchnet' logger
    """
    log_level_str = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logging.getLogger('scratchnet').setLevel(log_level)

    return log_level
