"""
Logging for Switchyard.

Log records may carry operation context through `extra=`:

    logger.warning("Sync failed", extra={"operation": "sync", "subject": "pdf",
                                         "code": "filesystem_error"})

The console formatter appends that context to the line, and the in-memory
buffer behind `GET /api/logs` stores it as fields that can be filtered on.
`log_operation` does this for an OperationResult.
"""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# Record attributes copied into buffered entries and console lines
CONTEXT_FIELDS = ("operation", "subject", "code")


def record_context(record: logging.LogRecord) -> dict[str, str]:
    context = {}
    for field in CONTEXT_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            context[field] = getattr(value, "value", value)
    return context


class LogBuffer:
    """Recent log entries, newest last."""

    def __init__(self, maxlen: int = 1000):
        self._buffer: deque[dict[str, Any]] = deque(maxlen=maxlen)

    def append(self, entry: dict[str, Any]) -> None:
        self._buffer.append(entry)

    def get_recent(
        self,
        limit: int = 100,
        level: Optional[str] = None,
        subject: Optional[str] = None,
        code: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """The last `limit` entries matching every filter given."""
        entries = [
            e for e in self._buffer
            if (level is None or e["level"] == level.upper())
            and (subject is None or e.get("subject") == subject)
            and (code is None or e.get("code") == code)
        ]
        return entries[-limit:]

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


class BufferedHandler(logging.Handler):
    """Stores each record, with its operation context, in a LogBuffer."""

    def __init__(self, buffer: LogBuffer, level: int = logging.NOTSET):
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            }
            entry.update(record_context(record))
            self.buffer.append(entry)
        except Exception:
            self.handleError(record)


class ContextFormatter(logging.Formatter):
    """Appends `[operation subject=... code=...]` when a record carries context."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        parts = [context.pop("operation")] if "operation" in context else []
        parts.extend(f"{k}={v}" for k, v in context.items())
        return f"{line} [{' '.join(parts)}]"


_log_buffer = LogBuffer()


def get_log_buffer() -> LogBuffer:
    return _log_buffer


def log_operation(log: logging.Logger, operation: str, result: Any) -> None:
    """Log an OperationResult: successes at INFO, failures at WARNING with their code."""
    context = {"operation": operation, "subject": result.subject, "code": result.code}
    if result.success:
        log.info(result.detail or "done", extra=context)
    else:
        log.warning(result.detail, extra=context)


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
) -> None:
    """Route the root logger to stdout and to the in-memory buffer."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ContextFormatter(format_string or DEFAULT_LOG_FORMAT))
    root_logger.addHandler(console_handler)

    buffer_handler = BufferedHandler(_log_buffer, log_level)
    buffer_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(buffer_handler)

    # Quiet chatty libraries
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
