"""Logging setup for the toolbox CLI."""

from __future__ import annotations

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "mongo_toolbox"


def setup_logging(level: Union[str, int] = "INFO") -> logging.Logger:
    """Attach a single Rich handler on stderr to the root logger.

    Calling this again replaces the handler installed by a previous call
    instead of stacking a second one.
    """
    if isinstance(level, str):
        level = level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    # The driver is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(max(root_logger.level, logging.INFO))

    return root_logger
