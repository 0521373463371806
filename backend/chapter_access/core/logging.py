from __future__ import annotations

import logging

from chapter_access.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Apply LOG_LEVEL to the package loggers. Safe to call more than once
    (uvicorn reloads, tests): the root handler is only installed if missing.
    """
    resolved = (level or settings.LOG_LEVEL or "INFO").upper()

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)

    logging.getLogger("chapter_access").setLevel(resolved)
