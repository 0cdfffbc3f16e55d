from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """
    Configure logging for the CLI.

    Diagnostics go to stderr through rich; user-facing results are printed
    separately on stdout.

    Environment variables:
        FTPSYNC_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                           Default: WARNING. ``verbose`` forces DEBUG.
    """
    if verbose:
        log_level = logging.DEBUG
    else:
        env_level = os.getenv("FTPSYNC_LOG_LEVEL", "WARNING").upper()
        log_level = getattr(logging, env_level, logging.WARNING)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            show_path=verbose,
            rich_tracebacks=verbose,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
