"""
Observability components.

Provides contextual logging and operation metrics for model verbs.
"""

from .logging import (
    ContextualLoggerAdapter,
    current_model_context,
    get_logger,
    log_operation,
    model_context,
)
from .metrics import (
    MetricsCollector,
    OperationMetrics,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "model_context",
    "current_model_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
]
