"""Logging setup shared by the CLI and pipeline modules."""

import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "newsdigest"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure the package logger with a rich handler on stderr."""
    global _configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    if not _configured:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a child logger of the package logger."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
