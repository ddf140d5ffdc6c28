"""
Helper functions for index reconciliation.

This module contains small utilities for reading live index documents and
building index descriptors from column attributes.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pymongo import IndexModel

from ..columns import ColumnAttr
from ..constants import INDEX_KIND_GEO2DSPHERE, INDEX_KIND_TEXT, INDEX_LANGUAGE_OPTION

logger = logging.getLogger(__name__)


def index_keys(index: Mapping[str, Any]) -> list[str]:
    """
    Key field names of a live index document.

    Args:
        index: Index document as returned by ``list_indexes``

    Returns:
        Key names in index order (text indexes report ``_fts``/``_ftsx``)
    """
    keys = index.get("key") or {}
    if isinstance(keys, Mapping):
        return list(keys.keys())
    return [k for k, _ in keys]


def index_language(index: Mapping[str, Any]) -> str | None:
    """Language marker of a live index; only text indexes carry one."""
    return index.get(INDEX_LANGUAGE_OPTION)


def build_index_model(identifier: str, attr: ColumnAttr) -> IndexModel:
    """
    Build the index descriptor a column declares.

    Text columns get a text index named after the field with the declared
    default language; geo columns a 2dsphere index; anything else a scalar
    index in the declared direction. All carry the declared uniqueness.

    Args:
        identifier: Declared field identifier
        attr: Column attributes (``attr.is_index()`` is expected to be true)

    Returns:
        pymongo ``IndexModel``
    """
    if attr.text_language is not None:
        return IndexModel(
            [(identifier, INDEX_KIND_TEXT)],
            name=identifier,
            unique=attr.unique,
            default_language=attr.text_language,
        )
    if attr.geo_sphere:
        return IndexModel([(identifier, INDEX_KIND_GEO2DSPHERE)], unique=attr.unique)
    return IndexModel([(identifier, attr.sort_order)], unique=attr.unique)


def describe_index_model(model: IndexModel) -> str:
    """Short human-readable form of an index descriptor for log messages."""
    document = model.document
    keys = ", ".join(f"{k}:{v}" for k, v in document["key"].items())
    options = {k: v for k, v in document.items() if k not in ("key", "name")}
    return f"{document.get('name')}({keys}) {options}"
