"""Logging setup shared by the API server and the CLI scripts."""

import logging

from config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"

# Libraries that log every statement or request at INFO
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "urllib3",
)


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger and quiet chatty libraries.

    Args:
        level: Level name overriding ``settings.LOG_LEVEL``; the CLI passes
            ``"DEBUG"`` for ``--verbose``.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        level=getattr(logging, level_name),
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
