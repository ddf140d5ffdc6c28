"""
Lifecycle hooks invoked around model operations.

Subclass ``ModelHooks`` and override either method; the defaults are an
identity ``cast`` and a ``finish`` that only logs.

Example:
    class AuditHooks(ModelHooks[Request]):
        async def finish(self, request, event, old, new, session=None):
            await audit_log.insert_one({"event": event, "user": request.user_id})

    users = ModelFactory(User, hooks=AuditHooks())
"""

from typing import Any, Generic, TypeVar

from motor.motor_asyncio import AsyncIOMotorClientSession

from .observability.logging import get_logger

logger = get_logger(__name__)

RequestT = TypeVar("RequestT")


class ModelHooks(Generic[RequestT]):
    """
    Capability the model calls before reads and after writes.

    ``RequestT`` is whatever request context the embedding application passes
    through ``Model.set_request``; the model never inspects it.
    """

    def cast(self, document: dict[str, Any], request: RequestT | None) -> dict[str, Any]:
        """Transform a stored document before it is returned or rebuilt."""
        return document

    async def finish(
        self,
        request: RequestT | None,
        event: str,
        old: dict[str, Any],
        new: dict[str, Any],
        session: AsyncIOMotorClientSession | None = None,
    ) -> None:
        """Called after a successful write with the before/after documents."""
        logger.debug(f"{event} operation completed: {old} => {new}")
