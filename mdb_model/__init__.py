"""
MDB_MODEL - MongoDB Model Mapper

Typed records mapped onto MongoDB collections, with a fluent query builder,
declarative column metadata (indexes, hidden fields, wire names), index
reconciliation and lifecycle hooks.
"""

# Column metadata
from .columns import ColumnAttr, Columns, column, columns_for, lazy_column, load_columns
# Configuration
from .config import ModelConfig
# Errors
from .exceptions import (ConfigurationError, DocumentDecodeError,
                         FilterRequiredError, MongoModelError)
# Lifecycle hooks
from .hooks import ModelHooks
# Index management
from .indexes import IndexPlan, plan_index_changes, reconcile_indexes
# Model
from .model import Model, ModelFactory
from .query import QueryState
# Records
from .records import Record, TimestampedRecord

__version__ = "0.1.0"

__all__ = [
    # Model
    "Model",
    "ModelFactory",
    "QueryState",
    # Records
    "Record",
    "TimestampedRecord",
    # Columns
    "ColumnAttr",
    "Columns",
    "column",
    "columns_for",
    "lazy_column",
    "load_columns",
    # Hooks
    "ModelHooks",
    # Indexes
    "IndexPlan",
    "plan_index_changes",
    "reconcile_indexes",
    # Config
    "ModelConfig",
    # Errors
    "MongoModelError",
    "FilterRequiredError",
    "DocumentDecodeError",
    "ConfigurationError",
]
