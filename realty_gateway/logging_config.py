"""Logging setup driven by ``Settings``.

Handlers are picked by name from ``settings.log_handlers``:

default   -- stderr stream handler
database  -- pushes records to the CRM store under ``/logs``

The database handler is only attached when ``log_database_handler`` is on.
It only enqueues records from ``log_database_loggers``; a listener thread
does the writes, so request handlers never wait on the database.
"""
from __future__ import annotations

import atexit
import logging
import queue
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Callable

from realty_gateway.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class TraceFormatter(logging.Formatter):
    """Formatter that can leave out exception tracebacks."""

    def __init__(self, fmt: str | None = None, *, print_trace: bool = True) -> None:
        super().__init__(fmt)
        self.print_trace = print_trace

    def formatException(self, ei) -> str:  # noqa: N802
        if not self.print_trace:
            return ""
        return super().formatException(ei)

    def formatStack(self, stack_info: str) -> str:  # noqa: N802
        if not self.print_trace:
            return ""
        return super().formatStack(stack_info)

    def format(self, record: logging.LogRecord) -> str:
        if self.print_trace:
            return super().format(record)
        # logging caches exc_text on the record; keep other handlers unaffected
        saved = record.exc_text
        record.exc_text = None
        try:
            return super().format(record).rstrip("\n")
        finally:
            record.exc_text = saved


class CrmLogHandler(logging.Handler):
    """Store log records in the CRM database."""

    def __init__(self, crm_db_factory: Callable[[], Any], level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._crm_db_factory = crm_db_factory
        self._emitting = False

    def emit(self, record: logging.LogRecord) -> None:
        # Writing to the database may log itself; don't recurse
        if self._emitting:
            return
        self._emitting = True
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            }
            self._crm_db_factory().add_log(entry)
        except Exception:  # pylint: disable=broad-except
            self.handleError(record)
        finally:
            self._emitting = False


class LoggerPrefixFilter(logging.Filter):
    """Pass records from the given loggers and their children only."""

    def __init__(self, names: list[str]) -> None:
        super().__init__()
        self.names = list(names)

    def filter(self, record: logging.LogRecord) -> bool:
        return any(record.name == name or record.name.startswith(name + ".") for name in self.names)


_listener: QueueListener | None = None


def stop_log_listener() -> None:
    """Flush queued database records and stop the writer thread."""

    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


atexit.register(stop_log_listener)


def _database_handler(settings: Settings, crm_db_factory: Callable[[], Any]) -> logging.Handler:
    global _listener

    sink = CrmLogHandler(crm_db_factory)
    sink.setFormatter(logging.Formatter(LOG_FORMAT))

    # Firebase writes are blocking; callers only enqueue, a listener thread writes
    log_queue: queue.SimpleQueue = queue.SimpleQueue()
    _listener = QueueListener(log_queue, sink)
    _listener.start()

    handler = QueueHandler(log_queue)
    handler.setLevel(settings.log_database_handler_level.upper())
    # Message plus traceback; the sink adds time, level and logger name
    handler.setFormatter(TraceFormatter("%(message)s", print_trace=settings.log_print_trace))
    # Third-party loggers (urllib3, google-auth) would feed the writer its own requests
    handler.addFilter(LoggerPrefixFilter(settings.log_database_loggers))
    return handler


def configure_logging(settings: Settings, crm_db_factory: Callable[[], Any] | None = None) -> list[logging.Handler]:
    """Attach the configured handlers to the root logger and return them."""

    stop_log_listener()

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    handlers: list[logging.Handler] = []

    for name in settings.log_handlers:
        if name == "default":
            handler: logging.Handler = logging.StreamHandler()
            handler.setFormatter(TraceFormatter(LOG_FORMAT, print_trace=settings.log_print_trace))
        elif name == "database":
            if not settings.log_database_handler or crm_db_factory is None:
                continue
            handler = _database_handler(settings, crm_db_factory)
        else:
            raise ValueError(f"Unknown log handler: {name}")
        handler.set_name(name)
        handlers.append(handler)

    # Replace handlers from a previous call rather than stacking them
    for existing in list(root.handlers):
        if existing.get_name() in ("default", "database"):
            root.removeHandler(existing)
    for handler in handlers:
        root.addHandler(handler)

    return handlers
