"""
Logging for the ``ragquery`` namespace.

The level follows ``settings.environment``: INFO in development,
WARNING anywhere else.  Records stay inside the namespace (no
propagation to the root logger), so uvicorn's own handlers never
print them twice.
"""

from __future__ import annotations

import logging
import sys

from ragquery.core.config import settings

NAMESPACE = "ragquery"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handler: logging.Handler | None = None


def level_for(environment: str) -> int:
    return logging.INFO if environment == "development" else logging.WARNING


def setup_logging(level: int | None = None) -> logging.Logger:
    """
    Attach the stderr handler once and (re)set the namespace level.

    ``level`` defaults to the one derived from ``settings.environment``.
    """
    global _handler
    namespace = logging.getLogger(NAMESPACE)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        namespace.addHandler(_handler)
        namespace.propagate = False
    namespace.setLevel(level if level is not None else level_for(settings.environment))
    return namespace


def get_logger(name: str) -> logging.Logger:
    if _handler is None:
        setup_logging()
    return logging.getLogger(name)
