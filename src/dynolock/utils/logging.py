"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys

from rich.logging import RichHandler

from dynolock.utils.env import get_bool_env


def get_logger(name: str, level: int = logging.INFO, *, rich: bool | None = None) -> logging.Logger:
    """Configure and return a logger.

    Output goes through rich unless ``rich`` is False or ``DYNOLOCK_PLAIN_LOGS``
    is set, which suits log collectors that do not want ANSI styling.
    """
    logger = logging.getLogger(f"dynolock.{name}")
    if logger.handlers:
        return logger

    logger.setLevel(level)
    if rich is None:
        rich = not get_bool_env("DYNOLOCK_PLAIN_LOGS")

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(name)s %(levelname)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)
    logger.propagate = False
    return logger
