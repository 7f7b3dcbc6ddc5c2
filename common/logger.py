import logging
import sys
from typing import Optional

from common.config import settings

_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"


def get_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Stdout logger per module. Level defaults to LECTERN_LOG_LEVEL; the thread
    name is included so pool workers can be told apart.
    """
    logger = logging.getLogger(name or "lectern")
    if logger.handlers:
        return logger
    logger.setLevel((level or settings.log_level).upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
