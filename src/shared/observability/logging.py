"""Structured logging configuration.

Features:
- JSON and text format support
- Cluster namespace / reconcile correlation
- Service context injection
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from shared.config import LogFormat, LogLevel, get_settings

# Context variables for reconcile tracking
namespace_var: ContextVar[str | None] = ContextVar("namespace", default=None)
reconcile_id_var: ContextVar[str | None] = ContextVar("reconcile_id", default=None)


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add service context to log events."""
    settings = get_settings()
    event_dict["service"] = settings.app_name
    event_dict["environment"] = settings.environment.value
    return event_dict


def add_reconcile_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add reconcile context from context variables."""
    if namespace := namespace_var.get():
        event_dict.setdefault("namespace", namespace)
    if reconcile_id := reconcile_id_var.get():
        event_dict["reconcile_id"] = reconcile_id
    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO 8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def setup_logging(
    service_name: str | None = None,
    log_level: LogLevel | None = None,
    log_format: LogFormat | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        service_name: Override service name (defaults to settings.app_name)
        log_level: Override log level (defaults to settings.log_level)
        log_format: Override log format (defaults to settings.log_format)
    """
    settings = get_settings()

    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    # Convert LogLevel enum to logging constant (handle both enum and string)
    level_str = level.value if hasattr(level, "value") else str(level).upper()
    numeric_level = getattr(logging, level_str)

    logging.basicConfig(
        level=numeric_level,
        stream=sys.stdout,
        format="%(message)s",
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_service_context,
        add_reconcile_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if service_name:
        structlog.contextvars.bind_contextvars(service_name=service_name)

    fmt_str = fmt.value if hasattr(fmt, "value") else str(fmt).lower()
    if fmt_str == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Suppress noisy loggers
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (defaults to module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class ReconcileContextManager:
    """Context manager for reconcile-scoped logging context.

    Usage:
        with ReconcileContextManager(namespace="rook-ceph"):
            logger.info("Loading cluster info")  # Includes namespace
    """

    def __init__(
        self,
        namespace: str | None = None,
        reconcile_id: str | None = None,
    ):
        self.namespace = namespace
        self.reconcile_id = reconcile_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "ReconcileContextManager":
        if self.namespace:
            self._tokens.append((namespace_var, namespace_var.set(self.namespace)))
        if self.reconcile_id:
            self._tokens.append((reconcile_id_var, reconcile_id_var.set(self.reconcile_id)))
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    async def __aenter__(self) -> "ReconcileContextManager":
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def log_store_call(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    kind: str,
    name: str,
    success: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log completion of a call against the Kubernetes API."""
    log_data = {
        "store_operation": operation,
        "store_kind": kind,
        "store_name": name,
        "success": success,
        "duration_ms": round(duration_ms, 2),
    }
    if error:
        log_data["error"] = error

    if success:
        logger.debug("Store call completed", **log_data)
    else:
        logger.warning("Store call failed", **log_data)
