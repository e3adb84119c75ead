"""Observability module for structured logging."""

from .logging import (
    ReconcileContextManager,
    get_logger,
    log_store_call,
    namespace_var,
    reconcile_id_var,
    setup_logging,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Context
    "ReconcileContextManager",
    "namespace_var",
    "reconcile_id_var",
    # Logging helpers
    "log_store_call",
]
