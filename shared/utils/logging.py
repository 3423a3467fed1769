"""
Kube Actuator - Structured Logging
==================================

One JSON object per log line on stdout. The correlation ID of the
current request and the UID of the action being executed are read
from context variables and added to every line, including lines from
third-party loggers.

Usage:
    from shared.utils.logging import get_logger, setup_logging, action_context

    setup_logging(service_name="k8s-executor", log_level="INFO")
    logger = get_logger(__name__)

    with action_context("3f2a..."):
        logger.info("Scaling controller", extra={"namespace": "default"})
"""

import logging
import json
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional
from contextvars import ContextVar

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
action_uid_var: ContextVar[Optional[str]] = ContextVar("action_uid", default=None)

_CONTEXT_FIELDS = {
    "correlation_id": correlation_id_var,
    "action_uid": action_uid_var,
}

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}

# Chatty at DEBUG: the kubernetes client logs every request through urllib3
_QUIET_LOGGERS = ("urllib3", "kubernetes", "httpx", "httpcore")


class StructuredFormatter(logging.Formatter):
    """JSON formatter adding service name, context IDs and ``extra`` fields."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field, var in _CONTEXT_FIELDS.items():
            value = var.get()
            if value:
                entry[field] = value

        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(service_name: str, log_level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure the root logger; call once at startup in main.py.

    Args:
        service_name: Name of the service (e.g., "k8s-executor")
        log_level: Minimum log level name
        json_output: JSON lines if True, a plain text format otherwise
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(
            f"%(asctime)s | {service_name} | %(levelname)s | %(name)s | %(message)s"
        ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


@contextmanager
def action_context(action_uid: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``action_uid``."""
    token = action_uid_var.set(action_uid)
    try:
        yield
    finally:
        action_uid_var.reset(token)
