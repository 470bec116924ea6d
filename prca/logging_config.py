"""JSON-lines logging for ``prca``.

Each record becomes one JSON object on *stderr*, leaving *stdout* free and
giving CI log viewers one parseable event per line.  The context fields
in :data:`EXTRA_KEYS` are copied from ``extra=`` when a call supplies them::

    logger = setup_logging(__name__)
    logger.debug("changed files fetched", extra={"pr_number": 42})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

EXTRA_KEYS = ("repo", "pr_number", "report_path", "file")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in EXTRA_KEYS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _StderrHandler(logging.StreamHandler):
    # Looked up per record so a replaced sys.stderr (pytest capsys) is honoured.
    def __init__(self):
        logging.Handler.__init__(self)

    @property
    def stream(self):
        return sys.stderr


def _to_level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(
    name: str = "",
    level: str | None = None,
) -> logging.Logger:
    """Return logger *name*, attaching the JSON stderr handler on first use.

    *level* wins over the ``LOG_LEVEL`` environment variable, which wins
    over ``INFO``.  An explicit *level* also re-levels a logger that was
    already set up, which is how ``--log-level`` reaches module loggers
    created at import time.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        if level:
            logger.setLevel(_to_level(level))
        return logger

    logger.setLevel(_to_level(level or os.environ.get("LOG_LEVEL", "INFO")))
    handler = _StderrHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
