"""
Contextual logging for model operations.

While a model verb runs, the collection and record type it works on are held
in a context variable. Loggers from ``get_logger`` copy them onto every record
they emit, so hook failures and operation records can be traced back to the
model that produced them.
"""

import contextlib
import contextvars
import logging
from collections.abc import Iterator
from typing import Any

_model_scope: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "mdb_model_scope", default=None
)


@contextlib.contextmanager
def model_context(collection: str, record_type: str | None = None) -> Iterator[dict[str, Any]]:
    """
    Scope log records to one model.

    Scopes nest: the innermost one wins and the outer one is restored on exit.

    Args:
        collection: Collection the model reads and writes
        record_type: Name of the record class

    Yields:
        The fields added to log records inside the block
    """
    scope = {"collection": collection}
    if record_type:
        scope["record_type"] = record_type
    token = _model_scope.set(scope)
    try:
        yield scope
    finally:
        _model_scope.reset(token)


def current_model_context() -> dict[str, Any]:
    """Fields of the innermost active model scope (empty outside any)."""
    return dict(_model_scope.get() or {})


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the active model scope to ``extra``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**current_model_context(), **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """Module logger wrapped in a ``ContextualLoggerAdapter``."""
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **fields: Any,
) -> None:
    """
    Emit one structured record for a model operation.

    The record carries ``operation``, ``success``, ``duration_ms`` (when
    given), the active model scope and ``fields``.

    Args:
        logger: Logger or adapter to emit on
        operation: Operation name (e.g. "model.register_indexes")
        level: Log level
        success: Whether the operation succeeded
        duration_ms: Operation duration in milliseconds
        **fields: Extra record attributes (collection, event, ...)
    """
    extra = current_model_context()
    extra.update(operation=operation, success=success, **fields)
    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=extra)
