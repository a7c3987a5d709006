"""Logging configuration for the CLI.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the command-line entry point.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "droidshelf"
FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    logger_name: str = LOGGER_NAME,
) -> logging.Logger:
    """Attach a rich console handler and an optional file handler.

    Calling it again replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        if getattr(handler, "_droidshelf", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        level=logging.DEBUG if verbose else logging.WARNING,
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler._droidshelf = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    logger.propagate = False
    return logger
