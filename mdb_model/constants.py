"""
Constants for MDB_MODEL.

This module contains all shared constants used across the codebase to avoid
magic strings and improve maintainability.
"""

from typing import Final

# ============================================================================
# UPDATE OPERATOR CONSTANTS
# ============================================================================

OPERATOR_SIGIL: Final[str] = "$"
"""Prefix marking a top-level key of an update document as an update operator."""

SET_OPERATOR: Final[str] = "$set"
SET_ON_INSERT_OPERATOR: Final[str] = "$setOnInsert"
AND_OPERATOR: Final[str] = "$and"

# ============================================================================
# DOCUMENT CONSTANTS
# ============================================================================

ID_FIELD: Final[str] = "_id"
"""Primary key field. MongoDB creates and owns its index."""

UPDATED_AT_FIELD: Final[str] = "updatedAt"
"""Timestamp written on every create and update when timestamping is enabled."""

CREATED_AT_FIELD: Final[str] = "createdAt"
"""Timestamp written on create, and on upsert-insert, when timestamping is enabled."""

MODIFIED_COUNT_FIELD: Final[str] = "modified_count"
DELETED_COUNT_FIELD: Final[str] = "deleted_count"
INSERTED_IDS_FIELD: Final[str] = "inserted_ids"

# ============================================================================
# INDEX CONSTANTS
# ============================================================================

INDEX_KIND_TEXT: Final[str] = "text"
INDEX_KIND_GEO2DSPHERE: Final[str] = "2dsphere"

INDEX_ASCENDING: Final[int] = 1
INDEX_DESCENDING: Final[int] = -1

INDEX_LANGUAGE_OPTION: Final[str] = "default_language"
"""Option key MongoDB reports on text indexes (the language marker)."""

# ============================================================================
# LIFECYCLE EVENT TAGS
# ============================================================================

EVENT_CREATE: Final[str] = "create"
EVENT_CREATE_MANY: Final[str] = "create_many"
EVENT_UPDATE: Final[str] = "update"
EVENT_UPDATE_MANY: Final[str] = "update_many"
EVENT_DELETE: Final[str] = "delete"
EVENT_DELETE_MANY: Final[str] = "delete_many"

