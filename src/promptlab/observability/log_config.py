"""Logging setup driven by settings."""

import logging
from typing import Optional

from ..config import PromptLabSettings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# Package logger: every module logs under it via logging.getLogger(__name__)
PACKAGE_LOGGER = __name__.rsplit(".", 2)[0]


def level_from_name(name: Optional[str], default: int = logging.INFO) -> int:
    """Map "DEBUG" | "INFO" | "WARNING" | ... to a logging level; unknown names give default."""
    level = getattr(logging, (name or "").upper().strip(), None)
    return level if isinstance(level, int) else default


def configure_logging(settings: Optional[PromptLabSettings] = None) -> None:
    """Set the package logger level from LOG_LEVEL and attach a stream handler once."""
    settings = settings or get_settings()
    root = logging.getLogger(PACKAGE_LOGGER)
    root.setLevel(level_from_name(settings.LOG_LEVEL))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
