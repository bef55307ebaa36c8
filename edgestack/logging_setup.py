"""Logging configuration for the es command."""

from __future__ import annotations

import logging
import sys

from edgestack.config import EdgeStackConfig

TEXT_FORMAT = "%(asctime)s %(name)-24s %(levelname)-5s %(message)s"
JSON_FORMAT = "%(message)s"


def setup_logging(config: EdgeStackConfig) -> None:
    """Configure Python logging.

    Log records go to stderr so they never mix with command output that
    scripts may parse.
    """
    level = getattr(logging, config.log_level.upper(), logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))

    fmt = JSON_FORMAT if config.log_format == "json" else TEXT_FORMAT
    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)
