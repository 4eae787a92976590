"""
Logging utilities for the relay service and its maintenance scripts.

Provides a consistent logging format and configuration.
"""

import logging
import sys

# Google's discovery cache warns on every client build when file caching is off.
_QUIET_LOGGERS = {
    "googleapiclient.discovery_cache": logging.ERROR,
    "httpx": logging.WARNING,
}


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


__all__ = ["configure_logging"]
