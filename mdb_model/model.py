"""
Model: fluent query builder and CRUD verbs over one collection.

A ``Model`` binds a record type, its columns and a motor database to one
collection. Configuration calls (``where``, ``sort``, ``limit``, ...) return a
new ``Model`` and never change the one they were called on; terminal verbs
(``create``, ``update``, ``delete``, ``get``, ``aggregate``, ...) compile the
accumulated query state into a single driver call.

Every verb takes an optional ``session`` (a caller-owned
``AsyncIOMotorClientSession``) that is passed to exactly one driver call.
Sessions are never started or committed here.

Example:
    users = ModelFactory(User)

    await users(db).fill(User(name="ada", phone="555", password="secret")).create()

    user = await users(db).where({"name": "ada"}).first()
    user.password            # "" (hidden)
    user = await users(db).where({"name": "ada"}).visible(["password"]).first()
    user.password            # "secret"

    await users(db).where({"name": "ada"}).update({"age": 36})
    await users(db).where({"age": {"$gt": 30}}).all().delete()

This module is part of MDB_MODEL - MongoDB Model Mapper.
"""

import copy
import functools
import logging
import time
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any, Generic, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pydantic import BaseModel
from pymongo.results import InsertManyResult, InsertOneResult

from .columns import Columns, columns_for, lazy_column, load_columns
from .config import ModelConfig
from .constants import (
    CREATED_AT_FIELD,
    DELETED_COUNT_FIELD,
    EVENT_CREATE,
    EVENT_CREATE_MANY,
    EVENT_DELETE,
    EVENT_DELETE_MANY,
    EVENT_UPDATE,
    EVENT_UPDATE_MANY,
    ID_FIELD,
    INSERTED_IDS_FIELD,
    MODIFIED_COUNT_FIELD,
    SET_ON_INSERT_OPERATOR,
    SET_OPERATOR,
    UPDATED_AT_FIELD,
)
from .hooks import ModelHooks
from .indexes import IndexPlan, reconcile_indexes
from .observability.logging import get_logger, log_operation, model_context
from .observability.metrics import timed_operation
from .query import QueryState
from .transcoder import FieldTranscoder
from .utils.mongo import is_object_id, is_operator_document, stamp_timestamps, utc_now

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

Session = AsyncIOMotorClientSession | None


def _collection_tag(model: "Model", *args: Any, **kwargs: Any) -> dict[str, Any]:
    return {"collection": model.collection_name}


def _scoped(func):
    """Run a model verb inside its model logging scope."""

    @functools.wraps(func)
    async def wrapper(self: "Model", *args: Any, **kwargs: Any) -> Any:
        with model_context(self.collection_name, record_type=self._record_cls.__name__):
            return await func(self, *args, **kwargs)

    return wrapper


class Model(Generic[RecordT]):
    """
    Query builder and CRUD orchestrator for one record type and collection.

    Args:
        db: Motor database handle (shared, read-only)
        collection_name: Collection the model reads and writes
        record_cls: Pydantic record type; must build with no arguments
        columns: Column configuration (JSON text or mapping); derived from
            ``record_cls`` when omitted
        add_times: Stamp ``createdAt``/``updatedAt`` on writes
        hooks: Lifecycle hooks; identity/no-op when omitted
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        collection_name: str,
        record_cls: type[RecordT],
        columns: str | Mapping[str, Any] | None = None,
        add_times: bool = True,
        hooks: ModelHooks | None = None,
    ) -> None:
        self._db = db
        self._collection_name = collection_name
        self._record_cls = record_cls
        self._add_times = add_times
        self._hooks: ModelHooks = hooks or ModelHooks()
        self._request: Any = None
        self._query = QueryState()
        parsed = load_columns(columns) if columns is not None else columns_for(record_cls)
        self._transcoder: FieldTranscoder[RecordT] = FieldTranscoder(record_cls, parsed)
        self._inner: RecordT = record_cls()

    def _evolve(self, **changes: Any) -> "Model[RecordT]":
        clone = copy.copy(self)
        for name, value in changes.items():
            setattr(clone, f"_{name}", value)
        return clone

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def columns(self) -> Columns:
        return dict(self._transcoder.columns)

    @property
    def query(self) -> QueryState:
        """Accumulated query state."""
        return self._query

    @property
    def inner(self) -> RecordT:
        """Record payload used by ``create``."""
        return self._inner

    def take_inner(self) -> RecordT:
        """
        Hand over the record payload, leaving an all-defaults record in its place.

        Unlike the configuration methods this changes the model it is called on
        rather than returning a copy.
        """
        record, self._inner = self._inner, self._record_cls()
        return record

    @property
    def request(self) -> Any:
        return self._request

    @property
    def transcoder(self) -> FieldTranscoder[RecordT]:
        return self._transcoder

    def collection(self) -> AsyncIOMotorCollection:
        """Motor collection handle."""
        return self._db[self._collection_name]

    # ------------------------------------------------------------------
    # Model configuration
    # ------------------------------------------------------------------

    def set_request(self, request: Any) -> "Model[RecordT]":
        """Attach the request context handed to lifecycle hooks."""
        return self._evolve(request=request)

    def set_collection(self, name: str) -> "Model[RecordT]":
        return self._evolve(collection_name=name)

    def add_columns(self, names: Iterable[str]) -> "Model[RecordT]":
        """
        Add lazy columns: extra fields (e.g. produced by an aggregation) kept
        on typed reads, stored under their own names and never indexed.
        """
        if isinstance(names, str):
            names = [names]
        extra = {name: lazy_column(name) for name in names}
        return self._evolve(transcoder=self._transcoder.with_columns(extra))

    def fill(self, record: RecordT) -> "Model[RecordT]":
        """Set the record payload written by ``create``."""
        if not isinstance(record, self._record_cls):
            raise TypeError(
                f"fill() expects a {self._record_cls.__name__}, got {type(record).__name__}"
            )
        return self._evolve(inner=record)

    # ------------------------------------------------------------------
    # Query configuration
    # ------------------------------------------------------------------

    def where(self, filter: Mapping[str, Any]) -> "Model[RecordT]":
        """Add a filter clause; clauses are combined with ``$and``."""
        return self._evolve(query=self._query.where(filter))

    def sort(self, sort: Mapping[str, Any]) -> "Model[RecordT]":
        return self._evolve(query=self._query.sort_by(sort))

    def skip(self, count: int) -> "Model[RecordT]":
        return self._evolve(query=self._query.with_skip(count))

    def limit(self, count: int) -> "Model[RecordT]":
        """Maximum number of documents to read; 0 means no limit."""
        return self._evolve(query=self._query.with_limit(count))

    def batch_size(self, count: int) -> "Model[RecordT]":
        return self._evolve(query=self._query.with_batch_size(count))

    def select(self, projection: Mapping[str, Any]) -> "Model[RecordT]":
        """Projection applied by ``get``/``get_doc``/``cursor``."""
        return self._evolve(query=self._query.select(projection))

    def visible(self, names: Iterable[str]) -> "Model[RecordT]":
        """Return these hidden fields on typed reads for this operation."""
        return self._evolve(query=self._query.visible(names))

    def all(self) -> "Model[RecordT]":
        """Make ``update``/``delete`` affect every matching document."""
        return self._evolve(query=self._query.all())

    def upsert(self) -> "Model[RecordT]":
        return self._evolve(query=self._query.with_upsert())

    def reset(self) -> "Model[RecordT]":
        """Drop every filter, sort, pagination and visibility setting."""
        return self._evolve(query=QueryState())

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    @_scoped
    async def register_indexes(self, session: Session = None) -> IndexPlan | None:
        """
        Reconcile the collection's indexes with the declared index columns.

        Never raises for driver failures; see ``reconcile_indexes``.
        """
        start_time = time.time()
        plan = await reconcile_indexes(self.collection(), self._transcoder.columns, session)
        log_operation(
            logger,
            "model.register_indexes",
            level=logging.DEBUG,
            success=plan is not None,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return plan

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @timed_operation("model.create", tags_from=_collection_tag)
    @_scoped
    async def create(self, session: Session = None) -> InsertOneResult:
        """
        Insert the record payload set with ``fill``.

        An ``_id`` that is not an ObjectId is dropped so the server assigns one.
        """
        document = self._transcoder.inner_to_doc(self._inner)
        if not is_object_id(document.get(ID_FIELD)):
            document.pop(ID_FIELD, None)
        return await self._insert_one(document, session)

    @timed_operation("model.create", tags_from=_collection_tag)
    @_scoped
    async def create_doc(
        self, document: Mapping[str, Any], session: Session = None
    ) -> InsertOneResult:
        """Insert a raw document as given (no renaming)."""
        return await self._insert_one(dict(document), session)

    async def _insert_one(self, document: dict[str, Any], session: Session) -> InsertOneResult:
        if self._add_times:
            stamp_timestamps(document)
        result = await self.collection().insert_one(document, session=session)
        await self._finish(EVENT_CREATE, {}, document, session)
        return result

    @timed_operation("model.create_many", tags_from=_collection_tag)
    @_scoped
    async def create_many_doc(
        self, documents: Iterable[Mapping[str, Any]], session: Session = None
    ) -> InsertManyResult:
        """
        Insert raw documents in one batch.

        An empty batch makes no driver call and fires no hook.
        """
        batch = [dict(document) for document in documents]
        if not batch:
            return InsertManyResult([], acknowledged=True)
        now = utc_now()
        if self._add_times:
            for document in batch:
                stamp_timestamps(document, now)
        result = await self.collection().insert_many(batch, session=session)
        await self._finish(
            EVENT_CREATE_MANY, {}, {INSERTED_IDS_FIELD: list(result.inserted_ids)}, session
        )
        return result

    @timed_operation("model.update", tags_from=_collection_tag)
    @_scoped
    async def update(self, payload: Mapping[str, Any], session: Session = None) -> dict[str, Any]:
        """
        Update the first matching document, or every match after ``all()``.

        ``payload`` is either an update document keyed by operators
        (``{"$set": {...}, "$inc": {...}}``) or plain fields, which are wrapped
        in ``$set``. Field names are rewritten to wire names either way.

        Returns:
            The document as it was before the update (``{}`` if none matched),
            or ``{"modified_count": n}`` for multi-document updates

        Raises:
            FilterRequiredError: If no ``where`` clause was configured
        """
        filter = self._query.require_filter("update", self._collection_name)

        is_operator = is_operator_document(payload)
        update = self._transcoder.rename_field(payload, is_operator)
        if not is_operator:
            update = {SET_OPERATOR: update}

        if self._add_times:
            now = utc_now()
            update[SET_OPERATOR] = {**update.get(SET_OPERATOR, {}), UPDATED_AT_FIELD: now}
            if self._query.upsert:
                update[SET_ON_INSERT_OPERATOR] = {
                    **update.get(SET_ON_INSERT_OPERATOR, {}),
                    CREATED_AT_FIELD: now,
                }

        collection = self.collection()
        if self._query.all_matches:
            result = await collection.update_many(
                filter, update, upsert=self._query.upsert, session=session
            )
            summary = {MODIFIED_COUNT_FIELD: result.modified_count}
            await self._finish(EVENT_UPDATE_MANY, summary, update, session)
            return summary

        previous = await collection.find_one_and_update(
            filter,
            update,
            upsert=self._query.upsert,
            sort=self._query.sort_spec(),
            session=session,
        )
        previous = previous or {}
        await self._finish(EVENT_UPDATE, previous, update, session)
        return previous

    @timed_operation("model.delete", tags_from=_collection_tag)
    @_scoped
    async def delete(self, session: Session = None) -> dict[str, Any]:
        """
        Delete the first matching document, or every match after ``all()``.

        Returns:
            The deleted document (``{}`` if none matched), or
            ``{"deleted_count": n}`` for multi-document deletes

        Raises:
            FilterRequiredError: If no ``where`` clause was configured
        """
        filter = self._query.require_filter("delete", self._collection_name)
        collection = self.collection()

        if self._query.all_matches:
            result = await collection.delete_many(filter, session=session)
            summary = {DELETED_COUNT_FIELD: result.deleted_count}
            await self._finish(EVENT_DELETE_MANY, summary, {}, session)
            return summary

        deleted = await collection.find_one_and_delete(
            filter, sort=self._query.sort_spec(), session=session
        )
        deleted = deleted or {}
        await self._finish(EVENT_DELETE, deleted, {}, session)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def cursor(self, session: Session = None) -> AsyncIterator[dict[str, Any]]:
        """
        Stream matching documents as raw (unmasked) documents.

        Honors filter, sort, skip, limit, batch size and projection; each
        document passes through the ``cast`` hook.
        """
        found = self.collection().find(
            self._query.build_filter(), session=session, **self._query.find_options()
        )
        async for document in found:
            yield self._hooks.cast(document, self._request)

    @timed_operation("model.get", tags_from=_collection_tag)
    @_scoped
    async def get(self, session: Session = None) -> list[RecordT]:
        """
        Matching documents as typed records.

        Hidden fields not made visible with ``visible()`` keep their default
        values, as does anything the stored document (or projection) lacks.

        Raises:
            DocumentDecodeError: If a stored document does not fit the record type
        """
        hidden = self._transcoder.hidden_fields(self._query)
        return [self._transcoder.clear(document, hidden) async for document in self.cursor(session)]

    @timed_operation("model.get", tags_from=_collection_tag)
    @_scoped
    async def get_doc(self, session: Session = None) -> list[dict[str, Any]]:
        """Matching documents as raw documents, hidden fields included."""
        return [document async for document in self.cursor(session)]

    async def first(self, session: Session = None) -> RecordT | None:
        records = await self.limit(1).get(session)
        return records[0] if records else None

    async def first_doc(self, session: Session = None) -> dict[str, Any] | None:
        documents = await self.limit(1).get_doc(session)
        return documents[0] if documents else None

    async def _aggregate(
        self, pipeline: Iterable[Mapping[str, Any]], session: Session
    ) -> AsyncIterator[dict[str, Any]]:
        results = self.collection().aggregate(list(pipeline), session=session)
        async for document in results:
            yield self._hooks.cast(document, self._request)

    @timed_operation("model.aggregate", tags_from=_collection_tag)
    @_scoped
    async def aggregate(
        self, pipeline: Iterable[Mapping[str, Any]], session: Session = None
    ) -> list[RecordT]:
        """
        Run an aggregation pipeline and rebuild results as typed records.

        The pipeline runs verbatim: ``where``/``sort``/``skip``/``limit`` do not
        apply. Hidden-field masking does.
        """
        hidden = self._transcoder.hidden_fields(self._query)
        return [
            self._transcoder.clear(document, hidden)
            async for document in self._aggregate(pipeline, session)
        ]

    @timed_operation("model.aggregate", tags_from=_collection_tag)
    @_scoped
    async def aggregate_doc(
        self, pipeline: Iterable[Mapping[str, Any]], session: Session = None
    ) -> list[dict[str, Any]]:
        """Run an aggregation pipeline and return raw documents."""
        return [document async for document in self._aggregate(pipeline, session)]

    @timed_operation("model.distinct", tags_from=_collection_tag)
    @_scoped
    async def distinct(self, field: str, session: Session = None) -> list[Any]:
        """Distinct values of ``field`` among matching documents."""
        return await self.collection().distinct(
            field, self._query.build_filter(), session=session
        )

    @timed_operation("model.count_documents", tags_from=_collection_tag)
    @_scoped
    async def count_documents(self, session: Session = None) -> int:
        """Number of matching documents, after skip and within limit."""
        return await self.collection().count_documents(
            self._query.build_filter(), session=session, **self._query.count_options()
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _finish(
        self, event: str, old: dict[str, Any], new: dict[str, Any], session: Session
    ) -> None:
        try:
            await self._hooks.finish(self._request, event, old, new, session)
        except Exception:
            # hooks are best-effort; the write already happened
            logger.exception(f"[{self._collection_name}] Lifecycle hook failed after '{event}'")


class ModelFactory(Generic[RecordT]):
    """
    Builds ``Model`` instances for one record type.

    Columns are resolved once, when the factory is created.

    Example:
        users = ModelFactory(User, collection_name="user")
        model = users(db)
        await users.register_indexes(db)

    Args:
        record_cls: Pydantic record type
        collection_name: Defaults to ``record_cls.collection_name``, else the
            lowercase class name
        columns: Column configuration; derived from ``record_cls`` when omitted
        add_times: Stamp timestamps on writes (defaults to ``ModelConfig().add_times``)
        hooks: Lifecycle hooks shared by every model built
    """

    def __init__(
        self,
        record_cls: type[RecordT],
        collection_name: str | None = None,
        columns: str | Mapping[str, Any] | None = None,
        add_times: bool | None = None,
        hooks: ModelHooks | None = None,
    ) -> None:
        self.record_cls = record_cls
        self.collection_name = (
            collection_name
            or getattr(record_cls, "collection_name", "")
            or record_cls.__name__.lower()
        )
        self.columns: Columns = (
            load_columns(columns) if columns is not None else columns_for(record_cls)
        )
        self.add_times = add_times if add_times is not None else ModelConfig().add_times
        self.hooks = hooks
        # fail at declaration time rather than on first use
        FieldTranscoder(record_cls, self.columns)

    def __call__(self, db: AsyncIOMotorDatabase, request: Any = None) -> Model[RecordT]:
        model = Model(
            db,
            self.collection_name,
            self.record_cls,
            columns=self.columns,
            add_times=self.add_times,
            hooks=self.hooks,
        )
        if request is not None:
            model = model.set_request(request)
        return model

    async def register_indexes(
        self, db: AsyncIOMotorDatabase, session: Session = None
    ) -> IndexPlan | None:
        return await self(db).register_indexes(session)
