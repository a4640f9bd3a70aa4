"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys
from typing import Union

from rich.logging import RichHandler


def _build_handler(level: Union[int, str], rich: bool) -> logging.Handler:
    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)

    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def get_logger(name: str, level: Union[int, str] = logging.INFO, *, rich: bool = True) -> logging.Logger:
    """Configure and return a logger.

    Calling again with a different level or handler style reconfigures the
    logger; the latest call wins.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    current = [h for h in logger.handlers if getattr(h, "_identlock", False)]
    if current and all(isinstance(h, RichHandler) == rich for h in current):
        for handler in current:
            handler.setLevel(level)
        return logger

    for handler in current:
        logger.removeHandler(handler)
        handler.close()
    handler = _build_handler(level, rich)
    handler._identlock = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger
