"""Centralised logging configuration.

Library modules only call `logging.getLogger(__name__)`; applications call
`configure_logging()` once at start-up.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int | str = logging.INFO, *, force: bool = False) -> None:
    """Apply the default format and level to the root logger."""

    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, force=force)
    logging.getLogger("opp_match").setLevel(level)


__all__ = ["LOG_FORMAT", "configure_logging"]
