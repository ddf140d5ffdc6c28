"""
Index Management Module

Keeps the indexes on a collection in sync with the index columns a record
declares.

This module is part of MDB_MODEL - MongoDB Model Mapper.
"""

from .helpers import build_index_model, index_keys, index_language
from .manager import IndexPlan, plan_index_changes, reconcile_indexes

__all__ = [
    # Reconciliation
    "IndexPlan",
    "plan_index_changes",
    "reconcile_indexes",
    # Helpers
    "build_index_model",
    "index_keys",
    "index_language",
]
