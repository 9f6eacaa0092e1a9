"""Shared pytest fixtures and in-memory stand-ins for the MongoDB collections."""

import asyncio
import copy
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from pymongo.errors import DuplicateKeyError

from marginalia.app import App
from marginalia.config import Config
from marginalia.core.core import Services

# --- Fake collections ---

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": lambda value, operand: value is not None and value > operand,
    "$gte": lambda value, operand: value is not None and value >= operand,
    "$lt": lambda value, operand: value is not None and value < operand,
    "$lte": lambda value, operand: value is not None and value <= operand,
    "$ne": lambda value, operand: value != operand,
    "$in": lambda value, operand: value in operand,
}


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(op.startswith("$") for op in condition):
            if not all(_OPERATORS[op](value, operand) for op, operand in condition.items()):
                return False
        elif value != condition:
            return False
    return True


@dataclass
class FakeInsertResult:
    inserted_id: Any


@dataclass
class FakeUpdateResult:
    matched_count: int
    modified_count: int


@dataclass
class FakeDeleteResult:
    deleted_count: int


class FakeCursor:
    """Sortable async cursor over a snapshot of matching documents."""

    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._docs.sort(key=lambda doc: doc[key], reverse=direction == -1)
        return self

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for doc in self._docs:
            yield doc

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        return list(self._docs)


class FakeCollection:
    """In-memory collection implementing the subset of the async pymongo API the services use.

    Unique indexes are enforced on insert. `fail_next(method, exc)` makes the
    next call of that method raise, for failure-path tests.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self._unique_keys: list[tuple[str, ...]] = []
        self._failures: dict[str, list[BaseException]] = {}

    def fail_next(self, method: str, exc: BaseException) -> None:
        self._failures.setdefault(method, []).append(exc)

    def _maybe_fail(self, method: str) -> None:
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    async def create_index(self, keys: list[tuple[str, int]], unique: bool = False) -> str:
        if unique:
            self._unique_keys.append(tuple(field for field, _ in keys))
        return "_".join(f"{field}_{direction}" for field, direction in keys)

    async def insert_one(self, document: dict[str, Any]) -> FakeInsertResult:
        self._maybe_fail("insert_one")
        for existing in self.docs:
            if existing["_id"] == document["_id"]:
                raise DuplicateKeyError("E11000 duplicate key error index: _id_")
            for fields in self._unique_keys:
                if all(existing.get(field) == document.get(field) for field in fields):
                    raise DuplicateKeyError(f"E11000 duplicate key error index: {'_'.join(fields)}")
        self.docs.append(copy.deepcopy(document))
        return FakeInsertResult(inserted_id=document["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        self._maybe_fail("find_one")
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: dict[str, Any]) -> FakeCursor:
        self._maybe_fail("find")
        return FakeCursor([copy.deepcopy(doc) for doc in self.docs if _matches(doc, query)])

    async def count_documents(self, query: dict[str, Any]) -> int:
        self._maybe_fail("count_documents")
        return sum(1 for doc in self.docs if _matches(doc, query))

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> FakeUpdateResult:
        self._maybe_fail("update_one")
        for doc in self.docs:
            if _matches(doc, query):
                for field, value in update.get("$set", {}).items():
                    doc[field] = copy.deepcopy(value)
                for field, value in update.get("$inc", {}).items():
                    doc[field] = doc.get(field, 0) + value
                return FakeUpdateResult(matched_count=1, modified_count=1)
        return FakeUpdateResult(matched_count=0, modified_count=0)

    async def delete_one(self, query: dict[str, Any]) -> FakeDeleteResult:
        self._maybe_fail("delete_one")
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return FakeDeleteResult(deleted_count=1)
        return FakeDeleteResult(deleted_count=0)

    async def delete_many(self, query: dict[str, Any]) -> FakeDeleteResult:
        self._maybe_fail("delete_many")
        kept = [doc for doc in self.docs if not _matches(doc, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return FakeDeleteResult(deleted_count=deleted)


class FakeDatabase:
    """In-memory database handing out one FakeCollection per name."""

    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


def build_app(config: Config, database: FakeDatabase) -> App:
    """Create an App whose services run against the fake database."""
    app = App(config)
    core = app._core
    core.services = Services(database)  # type: ignore[arg-type]
    core.services.set_core(core)
    return app


# --- Fixtures ---


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        _env_file=None,
        database_url="mongodb://localhost:27017/marginalia_test",
        host="127.0.0.1",
        port=3200,
        debug=True,
        content_path=str(tmp_path / "content"),
        edit_max_retries=50,
        edit_retry_backoff_ms=1,
    )


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture
async def app(config, database) -> AsyncIterator[App]:
    app = build_app(config, database)
    await app._core.services.start_all()
    yield app
    await app._core.mongo_client.aclose()


@pytest.fixture
def services(app) -> Services:
    return app._core.services


@pytest.fixture
def sync_app(config, database) -> App:
    """App for synchronous HTTP tests; indexes are created on a throwaway loop."""
    app = build_app(config, database)
    asyncio.run(app._core.services.start_all())
    return app
