"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "[%(levelname)-7s] %(asctime)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the root logger."""
    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times (uvicorn reload, tests)
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
