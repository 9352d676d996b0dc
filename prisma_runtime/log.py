"""
Logging setup for applications embedding the engine runtime.

The library itself only creates module loggers; call setup_logging() from
an application entry point to get output.

License: Mozilla Public License 2.0
"""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "PRISMA_RUNTIME_LOG_LEVEL"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stderr handler to the prisma_runtime logger.

    Args:
        level: Level name; defaults to $PRISMA_RUNTIME_LOG_LEVEL or INFO

    Returns:
        The package logger
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV, 'INFO')).upper()
    logger = logging.getLogger('prisma_runtime')
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not any(getattr(h, '_prisma_runtime', False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._prisma_runtime = True
        logger.addHandler(handler)

    return logger
