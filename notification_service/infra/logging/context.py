"""Contextvar-based log context.

The delivery worker binds ``job_id`` (and the façade binds
``notification_id``) for the duration of one unit of work; the
``ContextInjectingFilter`` copies whatever is bound onto every record
emitted in that task, so provider logs carry the job they belong to
without threading ids through every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the log context of the current task."""
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current log context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Drop every field from the current log context."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind fields for the duration of a ``with`` block.

    Example:
        with log_context(job_id=job.id):
            await sender.send(job.payload)
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copy bound context fields onto each LogRecord.

    Attached to the root logger so every child logger benefits. Existing
    record attributes are never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
