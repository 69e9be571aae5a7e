"""
Shared fixtures for unit tests.

``InMemoryFirestore`` mimics the small slice of the ``AsyncClient`` surface
the schemas use (collection/document refs, collection groups, FieldFilter
queries, snapshots, transactions) on top of a dict, so path layout, query
semantics and conflict retries can be checked without the emulator.
"""

import uuid
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from firestore_tree_odm import CollectionSchema, FirestoreDB, init_firestore_tree
from firestore_tree_odm import transaction as transaction_module

from .schemas import build_schemas


# ---------------------------------------------------------------------------
# In-memory Firestore double
# ---------------------------------------------------------------------------
class Aborted(Exception):
    """Stands in for google.api_core.exceptions.Aborted on commit."""


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentRef", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self._data = None if data is None else dict(data)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return None if self._data is None else dict(self._data)


class FakeDocumentRef:
    def __init__(self, store: "InMemoryFirestore", path: str):
        self._store = store
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    async def get(self, transaction=None):
        if transaction is not None:
            transaction.record_read(self.path, self._store.versions.get(self.path, 0))
        return FakeSnapshot(self, self._store.docs.get(self.path))

    async def set(self, data):
        self._store.write(self.path, data)

    async def delete(self):
        self._store.remove(self.path)


_OPERATORS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
    "not-in": lambda a, b: a not in b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
    "array_contains_any": lambda a, b: isinstance(a, list) and any(v in a for v in b),
}


class FakeQuery:
    def __init__(self, store, matches, filters=(), orders=(), limit_to=None):
        self._store = store
        self._matches = matches
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_to

    def _copy(self, **changes):
        state = dict(filters=self._filters, orders=self._orders, limit_to=self._limit)
        state.update(changes)
        return FakeQuery(self._store, self._matches, **state)

    def where(self, filter=None):
        return self._copy(filters=self._filters + (filter,))

    def order_by(self, field_path, direction="ASCENDING"):
        return self._copy(orders=self._orders + ((field_path, direction),))

    def limit(self, count):
        return self._copy(limit_to=count)

    def _results(self) -> List[FakeSnapshot]:
        rows = []
        for path, data in self._store.docs.items():
            if not self._matches(path):
                continue
            if all(self._passes(data, flt) for flt in self._filters):
                rows.append((path, data))
        # Documents missing an ordered field are excluded, as in Firestore.
        for field_path, _ in self._orders:
            rows = [row for row in rows if field_path in row[1]]
        rows.sort(key=lambda row: row[0])
        for field_path, direction in reversed(self._orders):
            rows.sort(key=lambda row: row[1][field_path], reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[: self._limit]
        return [FakeSnapshot(FakeDocumentRef(self._store, path), data) for path, data in rows]

    @staticmethod
    def _passes(data, flt) -> bool:
        if flt.field_path not in data:
            return False
        return _OPERATORS[flt.op_string](data[flt.field_path], flt.value)

    async def stream(self, transaction=None):
        for snapshot in self._results():
            if transaction is not None:
                transaction.record_read(snapshot.reference.path, self._store.versions.get(snapshot.reference.path, 0))
            yield snapshot


class FakeCollectionRef(FakeQuery):
    def __init__(self, store, path: str):
        parent = path.strip("/")
        super().__init__(store, lambda doc_path: doc_path.rsplit("/", 1)[0] == parent)
        self.path = parent

    def document(self, document_id: Optional[str] = None) -> FakeDocumentRef:
        document_id = document_id or uuid.uuid4().hex[:20]
        return FakeDocumentRef(self._store, f"{self.path}/{document_id}")


class FakeTransaction:
    def __init__(self, store: "InMemoryFirestore", max_attempts: int):
        self._store = store
        self.max_attempts = max_attempts
        self.attempts = 0
        self._reads: Dict[str, int] = {}
        self._writes: List[tuple] = []

    def begin(self):
        self.attempts += 1
        self._reads = {}
        self._writes = []

    def record_read(self, path: str, version: int):
        self._reads.setdefault(path, version)

    def set(self, reference, data):
        self._writes.append(("set", reference.path, dict(data)))

    def delete(self, reference):
        self._writes.append(("delete", reference.path, None))

    def commit(self):
        for path, version in self._reads.items():
            if self._store.versions.get(path, 0) != version:
                raise Aborted(f"Document {path} changed since it was read")
        for kind, path, data in self._writes:
            if kind == "set":
                self._store.write(path, data)
            else:
                self._store.remove(path)


def fake_async_transactional(to_wrap):
    """Optimistic retry loop with the same contract as ``async_transactional``."""

    async def runner(transaction: FakeTransaction):
        for _ in range(transaction.max_attempts):
            transaction.begin()
            result = await to_wrap(transaction)
            try:
                transaction.commit()
            except Aborted:
                continue
            return result
        raise ValueError(f"Failed to commit transaction in {transaction.max_attempts} attempts.")

    return runner


class InMemoryFirestore:
    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.versions: Dict[str, int] = {}
        self.transactions: List[FakeTransaction] = []

    def write(self, path, data):
        self.docs[path] = dict(data)
        self.versions[path] = self.versions.get(path, 0) + 1

    def remove(self, path):
        if path in self.docs:
            del self.docs[path]
            self.versions[path] = self.versions.get(path, 0) + 1

    def collection(self, path: str) -> FakeCollectionRef:
        return FakeCollectionRef(self, path)

    def collection_group(self, collection_id: str) -> FakeQuery:
        def matches(doc_path: str) -> bool:
            segments = doc_path.split("/")
            return len(segments) >= 2 and segments[-2] == collection_id

        return FakeQuery(self, matches)

    def document(self, path: str) -> FakeDocumentRef:
        return FakeDocumentRef(self, path.strip("/"))

    def transaction(self, max_attempts: int = 5) -> FakeTransaction:
        tx = FakeTransaction(self, max_attempts)
        self.transactions.append(tx)
        return tx


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
def make_db(client) -> FirestoreDB:
    db = FirestoreDB.__new__(FirestoreDB)
    db.project_id = "test-project"
    db.database = None
    db.credentials = None
    db.max_transaction_attempts = 5
    db._emulator_host = None
    db.client = client
    return db


@pytest.fixture(autouse=True)
def clean_registry():
    CollectionSchema.clear_registry()
    yield
    CollectionSchema.clear_registry()


@pytest.fixture
def mock_firestore_client():
    return MagicMock()


@pytest.fixture
def firestore_db(mock_firestore_client):
    return make_db(mock_firestore_client)


@pytest.fixture
def memory_store():
    return InMemoryFirestore()


@pytest.fixture
def memory_db(memory_store, monkeypatch):
    monkeypatch.setattr(transaction_module, "async_transactional", fake_async_transactional)
    return make_db(memory_store)


def _register(db):
    schemas = build_schemas()
    init_firestore_tree(db, list(vars(schemas).values()))
    return schemas


@pytest.fixture
def schemas(firestore_db):
    """Schemas bound to a MagicMock client."""
    return _register(firestore_db)


@pytest.fixture
def memory_schemas(memory_db):
    """Schemas bound to the in-memory store."""
    return _register(memory_db)
