"""Logging setup for the command line."""

import logging
import sys


def setup_logging(level: str = "WARNING") -> None:
    """Configure the root logger with a single stderr handler."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))
