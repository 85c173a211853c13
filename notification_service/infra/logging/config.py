"""Logging configuration setup.

Root logger gets a single QueueHandler (plus the context filter via
dictConfig); the console and rotating-file handlers live behind a
QueueListener so provider calls never block on log I/O.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import time
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from notification_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def complete(max_wait: float = 5.0) -> None:
    """Block until queued log records have been handed to the handlers."""
    if _log_queue is None or _listener is None:
        return

    deadline = time.monotonic() + max_wait
    while not _log_queue.empty() and time.monotonic() < deadline:
        time.sleep(0.01)


def shutdown() -> None:
    """Flush pending records and stop the QueueListener."""
    global _log_queue, _listener, _queue_handler, _LOGGING_INITIALIZED

    if _listener is not None:
        complete()
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None
    _LOGGING_INITIALIZED = False


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Configure logging once per process.

    Args:
        log_settings: Settings to apply. Loaded via get_logging_settings()
            when omitted.
        force: Reconfigure even if logging was already set up.
        **configure_kwargs: Overrides passed straight to configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from notification_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **configure_kwargs})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    include_function_name: bool = False,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "notification-service",
    **kwargs: Any,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    Example:
        from notification_service.core.settings import get_logging_settings

        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": _build_filters_config(include_context),
            "root": {
                "level": log_level.upper(),
                "handlers": [],
                "filters": ["context"] if include_context else [],
            },
        }
    )

    _setup_queue_logging(
        handlers=_build_handlers(
            console_enabled=console_enabled,
            console_level=console_level or log_level,
            file_path=path,
            file_level=file_level or log_level,
            file_max_bytes=file_max_bytes,
            file_backup_count=file_backup_count,
            json_logs=json_logs,
            include_function_name=include_function_name,
            service_name=service_name,
        )
    )


def _build_filters_config(include_context: bool) -> dict[str, Any]:
    if not include_context:
        return {}
    return {
        "context": {
            "()": "notification_service.infra.logging.context.ContextInjectingFilter",
        }
    }


def _build_formatter(
    json_logs: bool, include_function_name: bool, service_name: str
) -> logging.Formatter:
    if json_logs:
        fmt_keys = {"level": "levelname", "logger": "name", "message": "message"}
        if include_function_name:
            fmt_keys["function"] = "funcName"
        return JSONFormatter(fmt_keys=fmt_keys, static={"service": service_name})

    fmt = TEXT_FORMAT
    if include_function_name:
        fmt = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(message)s"
    return logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT)


def _build_handlers(
    *,
    console_enabled: bool,
    console_level: str,
    file_path: Path | None,
    file_level: str,
    file_max_bytes: int,
    file_backup_count: int,
    json_logs: bool,
    include_function_name: bool,
    service_name: str,
) -> list[logging.Handler]:
    formatter = _build_formatter(json_logs, include_function_name, service_name)
    handlers: list[logging.Handler] = []

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level.upper())
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if file_path:
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level.upper())
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    return handlers


def _setup_queue_logging(handlers: list[logging.Handler]) -> None:
    """Start a QueueListener over ``handlers`` and attach its QueueHandler to root."""
    global _log_queue, _listener, _queue_handler

    # Reconfiguration replaces the previous listener instead of stacking a second one.
    if _listener is not None or _queue_handler is not None:
        shutdown()

    _log_queue = Queue()
    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    root = logging.getLogger()
    _queue_handler = QueueHandler(_log_queue)
    # Logger filters skip records propagated from child loggers; handler filters see them all.
    for log_filter in root.filters:
        _queue_handler.addFilter(log_filter)
    root.addHandler(_queue_handler)
