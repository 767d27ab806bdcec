"""
Logging setup for inference passes.

Records render as one JSON object per line. Every record emitted while a
collection is being analyzed carries that pass's analysis id.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Set for the duration of one analyze_collection call
analysis_id_ctx: ContextVar[Optional[str]] = ContextVar("analysis_id", default=None)

# Anything on a record that is not in this set arrived through `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord(
    "", logging.INFO, "", 0, "", (), None))) | {"message", "asctime", "extra_fields"}


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """Renders a record, its analysis id and its extras as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        current = analysis_id_ctx.get()
        if current:
            payload["analysis_id"] = current
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(getattr(record, "extra_fields", {}))
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in payload
        )
        return json.dumps(payload, default=str)


class PerformanceTracker:
    """
    Times a block and logs its outcome.

    A DEBUG record marks the start. On exit one record reports
    `duration_ms`: at `log_level` when the block succeeded, at ERROR
    with the exception type when it raised. Exceptions propagate.
    """

    def __init__(self, operation: str, logger: logging.Logger,
                 log_level: int = logging.INFO, **extra_fields):
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.duration_ms: Optional[float] = None
        self._started = 0.0

    def _fields(self, **more) -> Dict[str, Any]:
        return {"extra_fields": {"operation": self.operation, **more, **self.extra_fields}}

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.debug(f"Starting operation: {self.operation}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        if exc_type is None:
            self.logger.log(self.log_level, f"Operation completed: {self.operation}",
                            extra=self._fields(duration_ms=self.duration_ms))
        else:
            self.logger.error(f"Operation failed: {self.operation}",
                              extra=self._fields(duration_ms=self.duration_ms,
                                                 error=str(exc_val),
                                                 error_type=exc_type.__name__))
        return False


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """Replace the root handlers with one stderr handler at `log_level`."""
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter() if json_format
        else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root.addHandler(handler)


def set_analysis_id(analysis_id: Optional[str] = None) -> str:
    """Bind an analysis id (a fresh uuid4 when omitted) to the current context."""
    analysis_id = analysis_id or str(uuid.uuid4())
    analysis_id_ctx.set(analysis_id)
    return analysis_id


def get_analysis_id() -> Optional[str]:
    return analysis_id_ctx.get()


def clear_analysis_id():
    analysis_id_ctx.set(None)
