"""
Index reconciliation.

Converges the indexes present on a collection towards the indexes its record
columns declare. Only key presence is compared; existing index options are not
verified. Reconciliation never fails the caller: enumeration, drop and create
errors are logged and the collection stays usable with whatever indexes it
already has.

This module is part of MDB_MODEL - MongoDB Model Mapper.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCollection
from pymongo import IndexModel
from pymongo.errors import PyMongoError

from ..columns import Columns
from ..constants import ID_FIELD
from .helpers import build_index_model, describe_index_model, index_keys, index_language

logger = logging.getLogger(__name__)


@dataclass
class IndexPlan:
    """Outcome of diffing live indexes against declared columns."""

    keep: list[str] = field(default_factory=list)
    create: list[IndexModel] = field(default_factory=list)
    drop: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.create and not self.drop


def plan_index_changes(
    live_indexes: Iterable[Mapping[str, Any]], columns: Columns
) -> IndexPlan:
    """
    Three-way diff of live indexes against declared index columns.

    For each key of each live index (``_id`` excepted):
      - a key naming a desired column satisfies that column;
      - otherwise the index is an orphan. Orphans without a language marker
        are dropped by name. Orphans with one (text indexes, whose keys are
        ``_fts``/``_ftsx``) satisfy the column their index name matches, and
        are dropped when the name matches none.

    An index that is dropped satisfies nothing: declared columns covered by
    one of its other keys are created again in the same pass.

    Columns left unsatisfied get a new index descriptor.

    Known approximation: a language-marked index whose name equals a column is
    taken to satisfy that column whatever kind of index the column declares.

    Args:
        live_indexes: Index documents as returned by ``list_indexes``
        columns: Declared column configuration

    Returns:
        IndexPlan with column names kept, descriptors to create, names to drop
    """
    desired = [name for name, attr in columns.items() if attr.is_index()]
    plan = IndexPlan()

    def schedule_drop(index_name: str | None) -> bool:
        if not index_name:
            logger.warning("Orphan index has no name; cannot drop it")
            return False
        if index_name not in plan.drop:
            plan.drop.append(index_name)
        return True

    for index in live_indexes:
        index_name = index.get("name")
        language = index_language(index)
        satisfied: list[str] = []
        orphan = False
        for key in index_keys(index):
            if key == ID_FIELD:
                continue
            if key in desired:
                desired.remove(key)
                satisfied.append(key)
            elif language is None:
                orphan = True
            elif index_name in desired:
                desired.remove(index_name)
                satisfied.append(index_name)
            elif index_name not in satisfied:
                orphan = True

        if orphan and schedule_drop(index_name):
            # a dropped index satisfies nothing; recreate its columns this pass
            desired.extend(satisfied)
        else:
            plan.keep.extend(satisfied)

    plan.create = [build_index_model(name, columns[name]) for name in desired]
    return plan


async def reconcile_indexes(
    collection: AsyncIOMotorCollection,
    columns: Columns,
    session: AsyncIOMotorClientSession | None = None,
) -> IndexPlan | None:
    """
    Run one reconciliation pass against a collection.

    Args:
        collection: Motor collection to reconcile
        columns: Declared column configuration
        session: Optional client session threaded into every driver call

    Returns:
        The executed IndexPlan, or None when live indexes could not be listed
    """
    collection_name = collection.name
    try:
        live_indexes = await collection.list_indexes(session=session).to_list(None)
    except PyMongoError:
        logger.exception(
            f"[{collection_name}] Can't list indexes; skipping index reconciliation"
        )
        return None

    plan = plan_index_changes(live_indexes, columns)
    if plan.is_noop:
        logger.debug(f"[{collection_name}] Indexes already match declared columns")
        return plan

    for index_name in plan.drop:
        try:
            await collection.drop_index(index_name, session=session)
            logger.info(f"[{collection_name}] Dropped index '{index_name}'")
        except PyMongoError as e:
            logger.warning(f"[{collection_name}] Can't drop index '{index_name}': {e}")

    if plan.create:
        try:
            created = await collection.create_indexes(plan.create, session=session)
            logger.info(f"[{collection_name}] Created indexes {created}")
        except PyMongoError:
            logger.exception(
                f"[{collection_name}] Can't create indexes: "
                f"{[describe_index_model(m) for m in plan.create]}"
            )

    return plan
