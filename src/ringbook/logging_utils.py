from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ringbook"


class RingbookRichHandler(RichHandler):
    """RichHandler tagged so configure_logging can find its own handler again."""


def configure_logging(debug: bool = False, console: Console | None = None) -> logging.Logger:
    """Attach a rich handler to the package logger; safe to call repeatedly."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RingbookRichHandler):
            logger.removeHandler(handler)
    handler = RingbookRichHandler(
        console=console or Console(stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
    )
    logger.addHandler(handler)
    set_debug_logging(debug)
    return logger


def set_debug_logging(enabled: bool) -> None:
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG if enabled else logging.WARNING)


__all__ = ["LOGGER_NAME", "configure_logging", "set_debug_logging"]
