"""
Логирование для storefront.

Один родительский логгер "storefront", уровень берётся из config.LOG_LEVEL.
"""

import logging
import sys

from .config import LOG_LEVEL

logger = logging.getLogger("storefront")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

# не дублируем записи в root
logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """Дочерний логгер storefront.<name> (или корневой, если name не задан)"""
    if name:
        return logging.getLogger(f"storefront.{name}")
    return logger
