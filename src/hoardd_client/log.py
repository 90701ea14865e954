"""Package-wide logging helpers.

A NullHandler sits on the package logger so importing the client stays quiet
until the command line (or an embedding application) configures logging.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

PACKAGE_LOGGER_NAME = "hoardd_client"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def level_for(verbose: bool = False, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Optional[IO[str]] = None,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a single stream handler to the package logger and set its level.

    Calling this again only refreshes the level (and a closed stream), so the
    CLI can be invoked repeatedly in one process without duplicating output.
    """
    logger = get_logger()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    stream = stream or sys.stderr
    fmt = fmt or "%(asctime)s %(levelname)s %(name)s: %(message)s"
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            if getattr(handler.stream, "closed", False):
                handler.setStream(stream)
            return logger
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt=fmt))
    logger.addHandler(handler)
    return logger
