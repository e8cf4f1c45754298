"""In-memory stand-ins for the motor client surface the operations use."""

from __future__ import annotations

import asyncio
import copy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Set

import pytest
from pymongo.errors import OperationFailure

_MISSING = object()


def _get(document: Dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set(document: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = copy.deepcopy(value)


def _unset(document: Dict[str, Any], path: str) -> None:
    parts = path.split(".")
    current: Any = document
    for part in parts[:-1]:
        if not isinstance(current, dict) or part not in current:
            return
        current = current[part]
    if isinstance(current, dict):
        current.pop(parts[-1], None)


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "$exists":
        return (actual is not _MISSING) == bool(expected)
    if op == "$ne":
        return not _compare("$eq", actual, expected)
    if op == "$nin":
        return not _compare("$in", actual, expected)
    if actual is _MISSING:
        return False
    if op == "$eq":
        if isinstance(actual, list) and not isinstance(expected, list):
            return expected in actual
        return actual == expected
    if op == "$in":
        return any(_compare("$eq", actual, item) for item in expected)
    if op == "$elemMatch":
        if not isinstance(actual, list):
            return False
        return any(all(_compare(k, item, v) for k, v in expected.items()) for item in actual)
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    try:
        if op == "$lt":
            return actual < expected
        if op == "$lte":
            return actual <= expected
        if op == "$gt":
            return actual > expected
        if op == "$gte":
            return actual >= expected
    except TypeError:
        return False
    raise NotImplementedError(op)


def matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for path, condition in query.items():
        actual = _get(document, path)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(op, actual, expected) for op, expected in condition.items()):
                return False
        elif not _compare("$eq", actual, condition):
            return False
    return True


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = documents

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield document


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.documents: Dict[Any, Dict[str, Any]] = {}
        self.fail_on: Dict[str, Set[Any]] = {}
        self.writes: List[tuple] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def seed(self, *documents: Dict[str, Any]) -> "FakeCollection":
        for document in documents:
            self.documents[document["_id"]] = copy.deepcopy(document)
        return self

    def fail(self, method: str, *ids: Any) -> None:
        self.fail_on.setdefault(method, set()).update(ids)

    def find(self, query: Optional[Dict[str, Any]] = None, projection: Optional[List[str]] = None) -> FakeCursor:
        found = []
        for document in self.documents.values():
            if not matches(document, query or {}):
                continue
            if projection is None:
                found.append(copy.deepcopy(document))
            else:
                keep = {"_id"} | {p.split(".")[0] for p in projection}
                found.append({k: copy.deepcopy(v) for k, v in document.items() if k in keep})
        return FakeCursor(found)

    async def _enter(self, method: str, doc_id: Any) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if doc_id in self.fail_on.get(method, set()):
            raise OperationFailure(f"injected {method} failure for {doc_id}")
        self.writes.append((method, doc_id))

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any]):
        doc_id = query["_id"]
        await self._enter("update_one", doc_id)
        document = self.documents.get(doc_id)
        if document is None:
            return SimpleNamespace(matched_count=0, modified_count=0)
        for path, value in update.get("$set", {}).items():
            _set(document, path, value)
        for path in update.get("$unset", {}):
            _unset(document, path)
        return SimpleNamespace(matched_count=1, modified_count=1)

    async def delete_one(self, query: Dict[str, Any]):
        doc_id = query["_id"]
        await self._enter("delete_one", doc_id)
        removed = self.documents.pop(doc_id, None)
        return SimpleNamespace(deleted_count=0 if removed is None else 1)

    async def replace_one(self, query: Dict[str, Any], replacement: Dict[str, Any], upsert: bool = False):
        doc_id = query["_id"]
        await self._enter("replace_one", doc_id)
        if doc_id in self.documents or upsert:
            self.documents[doc_id] = copy.deepcopy({**replacement, "_id": doc_id})
        return SimpleNamespace(matched_count=1)


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeClient:
    def __init__(self):
        self.databases: Dict[str, FakeDatabase] = {}
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase()
        return self.databases[name]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def users(client: FakeClient) -> FakeCollection:
    return client["app"]["users"].seed(
        {"_id": 1, "name": "ada", "age": 36, "tags": ["admin", "ops"]},
        {"_id": 2, "name": "bob", "age": 41.5, "tags": ["ops"], "nickname": None},
        {"_id": 3, "name": "cy", "age": "29", "tags": [], "nickname": ""},
        {"_id": 4, "age": None, "active": False, "profile": {"city": "Oslo"}},
    )
