"""Logging setup for command-line use."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from tendertrack.config import config


def setup_logging(level: str | None = None, console: Console | None = None) -> logging.Logger:
    """
    Route tendertrack log records to a rich console handler.

    Args:
        level: Level name; defaults to the configured ``logging.level``.
        console: Console to write to (stderr by default).
    """
    level = (level or config.log_level).upper()
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("tendertrack")
    for existing in list(logger.handlers):
        if isinstance(existing, RichHandler):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level, logging.INFO))
    return logger
