"""
Pytest configuration and shared fixtures for MDB_MODEL tests.

This module provides:
- An in-memory stand-in for motor databases and collections
- Test record types and model factories
- Testcontainers fixtures for integration tests
"""

import copy
from types import SimpleNamespace
from typing import Any, ClassVar

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo.errors import OperationFailure
from pymongo.results import InsertManyResult, InsertOneResult

from mdb_model import ModelFactory, TimestampedRecord, column
from mdb_model.observability.metrics import get_metrics_collector


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: tests that need a real MongoDB")


# ============================================================================
# IN-MEMORY MOTOR STAND-IN
# ============================================================================

_MISSING = object()


def _compare(value: Any, operand: Any, op) -> bool:
    if value is _MISSING or value is None:
        return False
    try:
        return op(value, operand)
    except TypeError:
        return False


_OPERATORS = {
    "$eq": lambda v, o: v == o,
    "$ne": lambda v, o: v != o,
    "$gt": lambda v, o: _compare(v, o, lambda a, b: a > b),
    "$gte": lambda v, o: _compare(v, o, lambda a, b: a >= b),
    "$lt": lambda v, o: _compare(v, o, lambda a, b: a < b),
    "$lte": lambda v, o: _compare(v, o, lambda a, b: a <= b),
    "$in": lambda v, o: v in o,
    "$nin": lambda v, o: v not in o,
    "$exists": lambda v, o: (v is not _MISSING) == bool(o),
}


def matches(document: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    """Evaluate the subset of MongoDB query syntax the tests use."""
    for key, condition in (filter or {}).items():
        if key == "$and":
            if not all(matches(document, clause) for clause in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
            continue
        value = document.get(key, _MISSING)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_OPERATORS[op](value, operand) for op, operand in condition.items()):
                return False
        elif value != condition:
            return False
    return True


def _sort_documents(documents: list[dict], sort: Any) -> list[dict]:
    if not sort:
        return documents
    items = list(sort.items()) if isinstance(sort, dict) else list(sort)
    ordered = list(documents)
    for key, direction in reversed(items):
        ordered.sort(
            key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
            reverse=direction < 0,
        )
    return ordered


def _project(document: dict[str, Any], projection: dict[str, Any] | None) -> dict[str, Any]:
    if not projection:
        return document
    included = {k for k, v in projection.items() if v and k != "_id"}
    if included:
        projected = {k: v for k, v in document.items() if k in included}
        if projection.get("_id", 1):
            projected["_id"] = document.get("_id")
        return projected
    return {k: v for k, v in document.items() if k not in projection}


def _equality_seed(filter: dict[str, Any]) -> dict[str, Any]:
    seed: dict[str, Any] = {}
    for key, condition in filter.items():
        if key == "$and":
            for clause in condition:
                seed.update(_equality_seed(clause))
        elif not key.startswith("$") and not (
            isinstance(condition, dict) and any(k.startswith("$") for k in condition)
        ):
            seed[key] = condition
    return seed


def _apply_update(document: dict[str, Any], update: dict[str, Any], inserting: bool) -> bool:
    before = copy.deepcopy(document)
    for operator, payload in update.items():
        if operator == "$set":
            document.update(payload)
        elif operator == "$setOnInsert":
            if inserting:
                document.update(payload)
        elif operator == "$inc":
            for key, amount in payload.items():
                document[key] = document.get(key, 0) + amount
        elif operator == "$unset":
            for key in payload:
                document.pop(key, None)
        else:
            raise OperationFailure(f"Unknown modifier: {operator}")
    return document != before


class FakeCursor:
    """Async-iterable result set, like a motor cursor."""

    def __init__(self, documents: list[dict[str, Any]]):
        self._documents = documents

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield document

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        if length is None:
            return list(self._documents)
        return list(self._documents[:length])


class FakeCollection:
    """
    In-memory collection with the motor call signatures the model uses.

    Every driver call is recorded in ``calls`` as ``(method, kwargs)``.
    """

    def __init__(self, name: str):
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[dict[str, Any]] = [{"v": 2, "key": {"_id": 1}, "name": "_id_"}]
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append((method, kwargs))

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def _select(self, filter: dict[str, Any] | None, sort: Any = None) -> list[dict[str, Any]]:
        found = [d for d in self.documents if matches(d, filter)]
        return _sort_documents(found, sort)

    def _insert(self, document: dict[str, Any]) -> Any:
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))
        return document["_id"]

    # --- reads ---

    def find(
        self,
        filter=None,
        sort=None,
        skip=0,
        limit=0,
        batch_size=0,
        projection=None,
        session=None,
    ):
        self._record(
            "find",
            filter=filter,
            sort=sort,
            skip=skip,
            limit=limit,
            batch_size=batch_size,
            projection=projection,
            session=session,
        )
        found = self._select(filter, sort)[skip:]
        if limit:
            found = found[:limit]
        return FakeCursor([_project(copy.deepcopy(d), projection) for d in found])

    async def count_documents(self, filter, skip=0, limit=0, session=None):
        self._record("count_documents", filter=filter, skip=skip, limit=limit, session=session)
        found = self._select(filter)[skip:]
        if limit:
            found = found[:limit]
        return len(found)

    async def distinct(self, key, filter=None, session=None):
        self._record("distinct", key=key, filter=filter, session=session)
        values: list[Any] = []
        for document in self._select(filter):
            value = document.get(key, _MISSING)
            if value is not _MISSING and value not in values:
                values.append(value)
        return values

    def aggregate(self, pipeline, session=None):
        self._record("aggregate", pipeline=pipeline, session=session)
        documents = [copy.deepcopy(d) for d in self.documents]
        for stage in pipeline:
            (name, body), = stage.items()
            if name == "$match":
                documents = [d for d in documents if matches(d, body)]
            elif name == "$sort":
                documents = _sort_documents(documents, body)
            elif name == "$skip":
                documents = documents[body:]
            elif name == "$limit":
                documents = documents[:body]
            elif name == "$project":
                documents = [_project(d, body) for d in documents]
            elif name == "$addFields":
                for d in documents:
                    for key, value in body.items():
                        if isinstance(value, str) and value.startswith("$"):
                            d[key] = d.get(value[1:])
                        else:
                            d[key] = value
            else:
                raise OperationFailure(f"Unrecognized pipeline stage name: '{name}'")
        return FakeCursor(documents)

    # --- writes ---

    async def insert_one(self, document, session=None):
        self._record("insert_one", document=copy.deepcopy(document), session=session)
        return InsertOneResult(self._insert(document), True)

    async def insert_many(self, documents, session=None):
        self._record("insert_many", documents=copy.deepcopy(documents), session=session)
        if not documents:
            raise TypeError("documents must be a non-empty list")
        return InsertManyResult([self._insert(d) for d in documents], True)

    async def update_many(self, filter, update, upsert=False, session=None):
        self._record("update_many", filter=filter, update=update, upsert=upsert, session=session)
        found = self._select(filter)
        modified = sum(1 for d in found if _apply_update(d, update, inserting=False))
        upserted_id = None
        if not found and upsert:
            document = _equality_seed(filter)
            _apply_update(document, update, inserting=True)
            upserted_id = self._insert(document)
        return SimpleNamespace(
            matched_count=len(found), modified_count=modified, upserted_id=upserted_id
        )

    async def find_one_and_update(self, filter, update, upsert=False, sort=None, session=None):
        self._record(
            "find_one_and_update",
            filter=filter,
            update=update,
            upsert=upsert,
            sort=sort,
            session=session,
        )
        found = self._select(filter, sort)
        if found:
            previous = copy.deepcopy(found[0])
            _apply_update(found[0], update, inserting=False)
            return previous
        if upsert:
            document = _equality_seed(filter)
            _apply_update(document, update, inserting=True)
            self._insert(document)
        return None

    async def delete_many(self, filter, session=None):
        self._record("delete_many", filter=filter, session=session)
        found = self._select(filter)
        self.documents = [d for d in self.documents if not any(d is f for f in found)]
        return SimpleNamespace(deleted_count=len(found))

    async def find_one_and_delete(self, filter, sort=None, session=None):
        self._record("find_one_and_delete", filter=filter, sort=sort, session=session)
        found = self._select(filter, sort)
        if not found:
            return None
        self.documents = [d for d in self.documents if d is not found[0]]
        return found[0]

    # --- indexes ---

    def list_indexes(self, session=None):
        self._record("list_indexes", session=session)
        return FakeCursor(copy.deepcopy(self.indexes))

    async def create_indexes(self, models, session=None):
        self._record("create_indexes", models=list(models), session=session)
        names = []
        for model in models:
            document = dict(model.document)
            key = dict(document.pop("key"))
            name = document.pop("name", None) or "_".join(f"{k}_{v}" for k, v in key.items())
            if "text" in key.values():
                document.setdefault("default_language", "english")
                document["weights"] = {k: 1 for k, v in key.items() if v == "text"}
                key = {"_fts": "text", "_ftsx": 1}
            self.indexes.append({"v": 2, "key": key, "name": name, **document})
            names.append(name)
        return names

    async def drop_index(self, name, session=None):
        self._record("drop_index", name=name, session=session)
        if not any(index["name"] == name for index in self.indexes):
            raise OperationFailure(f"index not found with name [{name}]")
        self.indexes = [index for index in self.indexes if index["name"] != name]


class FakeDatabase:
    """Dictionary-style database handle handing out ``FakeCollection`` objects."""

    def __init__(self, name: str = "test_db"):
        self.name = name
        self._collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


# ============================================================================
# RECORD FIXTURES
# ============================================================================


class User(TimestampedRecord):
    collection_name: ClassVar[str] = "user"

    name: str = ""
    phone: str = column("", asc=True, unique=True)
    age: int = column(0, desc=True)
    password: str = column("", hidden=True, name="pswd")
    block: bool = False


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Empty in-memory database."""
    return FakeDatabase()


@pytest.fixture
def user_cls() -> type[User]:
    return User


@pytest.fixture
def users() -> ModelFactory[User]:
    """Model factory for the ``user`` collection with timestamping on."""
    return ModelFactory(User, add_times=True)


@pytest.fixture
def sample_users() -> list[dict[str, Any]]:
    """Raw stored documents, password under its wire name."""
    return [
        {"name": "ada", "phone": "100", "age": 36, "pswd": "s1", "block": False},
        {"name": "bob", "phone": "200", "age": 25, "pswd": "s2", "block": True},
        {"name": "cyd", "phone": "300", "age": 41, "pswd": "s3", "block": False},
    ]


@pytest_asyncio.fixture
async def seeded_db(fake_db, sample_users) -> FakeDatabase:
    """In-memory database with ``sample_users`` in the ``user`` collection."""
    collection = fake_db["user"]
    for document in sample_users:
        await collection.insert_one(dict(document))
    collection.calls.clear()
    return fake_db


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield


# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables before each test."""
    env_vars_to_clear = [
        "MDB_MODEL_ADD_TIMES",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    yield


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB container for integration tests.

    Session-scoped: the container starts once and is reused by every
    integration test.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    # single-node replica set, so transactions are available
    with MongoDbContainer(image="mongodb/mongodb-atlas-local:latest") as container:
        yield container


@pytest.fixture
def mongodb_connection_string(mongodb_container) -> str:
    exposed_port = mongodb_container.get_exposed_port(27017)
    return f"mongodb://localhost:{exposed_port}/?directConnection=true"


@pytest_asyncio.fixture
async def real_mongo_client(mongodb_connection_string):
    """
    Motor client connected to the test container.

    Automatically closes the client after the test.
    """
    from motor.motor_asyncio import AsyncIOMotorClient

    client = AsyncIOMotorClient(mongodb_connection_string)
    try:
        await client.admin.command("ping")
    except (RuntimeError, OSError) as e:
        pytest.fail(f"Failed to connect to MongoDB container: {e}")

    yield client

    client.close()


@pytest_asyncio.fixture
async def real_mongo_db(real_mongo_client):
    """
    Fresh database per test, dropped afterwards.
    """
    db_name = f"test_db_{ObjectId()}"
    db = real_mongo_client[db_name]

    yield db

    await real_mongo_client.drop_database(db_name)
