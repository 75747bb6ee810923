import logging
from typing import Optional

from config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging() -> logging.Logger:
    """Configure the ``ums`` logger once and return it"""
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    logger = logging.getLogger("ums")
    logger.setLevel(level)

    # Avoid duplicate console handlers when imported more than once
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger("ums")
    return base.getChild(name) if name else base


logger = setup_logging()
