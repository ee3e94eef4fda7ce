"""Logging configuration for the chart advisor.

Every module owns one named logger (``setup_logger("structure")``).  When no
level is passed, ``ADVISOR_LOG_LEVEL`` wins over ``app.log_level`` in
settings, and INFO is the fallback.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(name)-20s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_level() -> str:
    env_level = os.getenv("ADVISOR_LOG_LEVEL")
    if env_level:
        return env_level
    from advisor.config import SETTINGS
    return SETTINGS.get("app", {}).get("log_level", "INFO")


def setup_logger(name: str = "advisor", level: Optional[str] = None) -> logging.Logger:
    """Return the module logger *name*, attaching a stderr handler once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or _default_level()).upper(), logging.INFO))
    return logger
