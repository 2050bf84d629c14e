"""Logging for primeforge: one stderr handler on the ``primeforge`` namespace.

Range workers, the writer and the supervisors all log from the same
thread, so every record is stamped with the name of the asyncio task
that emitted it (``range-worker-3``, ``result-writer``). Records logged
outside a task are stamped ``main``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import UTC, datetime

NAMESPACE = "primeforge"

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(task)s] %(name)s: %(message)s"
_TEXT_DATE_FORMAT = "%H:%M:%S"

# Attributes a call site may attach with ``extra=`` that JSON output keeps.
_EXTRA_FIELDS = ("range",)


class _TaskNameFilter(logging.Filter):
    """Set ``record.task`` to the current asyncio task's name."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            task = asyncio.current_task()
        except RuntimeError:
            task = None
        record.task = task.get_name() if task is not None else "main"
        return True


class _JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: ``time``, ``level``, ``logger``, ``task``, ``message``, plus
    ``range`` when the call site supplied one and ``exception`` when the
    record carries a traceback.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "task": getattr(record, "task", "main"),
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Point the ``primeforge`` namespace at the current stderr.

    Any handler from an earlier call is replaced, so switching format or
    redirecting ``sys.stderr`` between runs takes effect.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``).
        json_format: Emit one JSON object per record instead of text.

    Returns:
        The ``primeforge`` logger.
    """
    logger = logging.getLogger(NAMESPACE)
    logger.setLevel(level)
    for old in list(logger.handlers):
        logger.removeHandler(old)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(_TaskNameFilter())
    if json_format:
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt=_TEXT_DATE_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``primeforge.<name>``, e.g. ``get_logger("engine.worker")``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")
