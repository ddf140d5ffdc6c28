"""
MongoDB document helpers for MDB_MODEL.

Small pure functions shared by the model verbs: operator detection,
identifier checks and timestamp stamping.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId

from ..constants import CREATED_AT_FIELD, OPERATOR_SIGIL, UPDATED_AT_FIELD


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime (BSON stores milliseconds)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def is_operator_document(document: Mapping[str, Any]) -> bool:
    """Whether any top-level key is an update operator (``$set``, ``$inc``, ...)."""
    return any(key.startswith(OPERATOR_SIGIL) for key in document)


def is_object_id(value: Any) -> bool:
    """Whether ``value`` is a usable document identifier."""
    return isinstance(value, ObjectId)


def stamp_timestamps(document: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """
    Set ``updatedAt``/``createdAt`` on a document being inserted.

    Existing values are kept when they already hold a datetime.

    Args:
        document: Document to stamp (modified in place)
        now: Timestamp to write (defaults to ``utc_now()``)

    Returns:
        The same document, for chaining
    """
    now = now or utc_now()
    for field in (UPDATED_AT_FIELD, CREATED_AT_FIELD):
        if not isinstance(document.get(field), datetime):
            document[field] = now
    return document
