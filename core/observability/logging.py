"""
Correlated logging for order sync runs.

Every line names the batch and order it belongs to, and the Temporal
workflow when it comes from a worker. The ids live in a ContextVar, so two
batches running in one worker process never share them.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


PROJECT_LOGGERS = ("activities", "workflows", "connectors", "order_sync", "order_store", "core")


@dataclass(frozen=True)
class CorrelationContext:
    """Ids identifying the unit of work a log line or audit record belongs to."""
    batch_id: Optional[str] = None
    order_id: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_run_id: Optional[str] = None
    activity_name: Optional[str] = None
    task_queue: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def label(self) -> str:
        """Compact ``batch/workflow/order:id`` tag for console lines."""
        parts = []
        if self.batch_id:
            parts.append(self.batch_id)
        if self.workflow_id:
            parts.append(self.workflow_id[:12])
        if self.order_id:
            parts.append(f"order:{self.order_id}")
        return "/".join(parts) or "-"


_correlation: ContextVar[CorrelationContext] = ContextVar(
    "order_sync_correlation", default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    return _correlation.get()


def current_batch_id() -> Optional[str]:
    """Batch being synchronized by the current task, if any."""
    return _correlation.get().batch_id


@contextmanager
def with_correlation(**ids):
    """Layer ids over the current context until the block exits.

    None values keep whatever the enclosing block set.
    """
    ctx = replace(_correlation.get(), **{k: v for k, v in ids.items() if v is not None})
    token = _correlation.set(ctx)
    try:
        yield ctx
    finally:
        _correlation.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _utc(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": _utc(record).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(get_correlation_context().to_dict())
        entry.update(getattr(record, "extra_fields", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``2024-04-01 09:30:00 [INFO ] order_sync.pipeline [batch-1/order:O1]: ...``"""

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{_utc(record):%Y-%m-%d %H:%M:%S} [{record.levelname:5}] {record.name} "
            f"[{get_correlation_context().label()}]: {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Loggers
# =============================================================================

class CorrelatedLogger(logging.LoggerAdapter):
    """Logger accepting ``extra_fields={...}``, rendered by the formatters above."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = kwargs.pop("extra_fields", None) or {}
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: Dict[str, CorrelatedLogger] = {}
_handler: Optional[logging.Handler] = None


def configure_logging(level: int = logging.INFO, json_format: bool = False) -> None:
    """Send all logs to stdout in the chosen format.

    Safe to call more than once: the handler installed by an earlier call is
    replaced, so a worker can switch to JSON after modules have logged.
    """
    global _handler

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setLevel(level)
    _handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    root.addHandler(_handler)
    root.setLevel(level)

    for name in PROJECT_LOGGERS:
        logging.getLogger(name).setLevel(level)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("temporalio").setLevel(logging.INFO)


def get_logger(name: str) -> CorrelatedLogger:
    if name not in _loggers:
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]


# =============================================================================
# Activity lifecycle
# =============================================================================

def log_activity_start(activity_name: str, **fields) -> None:
    get_logger(f"activities.{activity_name}").info(f"{activity_name} started", extra_fields=fields)


def log_activity_complete(activity_name: str, duration_ms: Optional[float] = None, **fields) -> None:
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 1)
    get_logger(f"activities.{activity_name}").info(f"{activity_name} completed", extra_fields=fields)


def log_activity_error(activity_name: str, error: str, **fields) -> None:
    get_logger(f"activities.{activity_name}").error(f"{activity_name} failed: {error}", extra_fields=fields)
