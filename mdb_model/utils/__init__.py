"""
Utility functions for MDB_MODEL.
"""

from .mongo import is_object_id, is_operator_document, stamp_timestamps, utc_now

__all__ = [
    "is_object_id",
    "is_operator_document",
    "stamp_timestamps",
    "utc_now",
]
