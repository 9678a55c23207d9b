from __future__ import annotations

import copy
import json
from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from pymongo.results import InsertOneResult, UpdateResult

from disaster_hub.agent.synthesizer import MissionSynthesizer
from disaster_hub.ai.enrichment import MissionEnricher
from disaster_hub.domain.normalizer import normalize_incident
from disaster_hub.publisher.broadcaster import Broadcaster
from disaster_hub.storage.repository import IncidentRepository, MissionRepository

_MISSING = object()


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, expected in query.items():
        value = doc.get(key, _MISSING)
        if isinstance(expected, dict) and "$exists" in expected:
            if (value is not _MISSING) != expected["$exists"]:
                return False
        elif value is _MISSING or value != expected:
            return False
    return True


class FakeCollection:
    """In-memory stand-in for the subset of pymongo Collection used by the repositories."""

    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.unique_keys: list[tuple[str, ...]] = []
        self.insert_calls = 0

    def with_options(self, **kwargs: Any) -> "FakeCollection":
        return self

    def create_index(self, keys: list[tuple[str, int]], name: str | None = None, unique: bool = False) -> str:
        if unique:
            self.unique_keys.append(tuple(field for field, _ in keys))
        return name or "_".join(field for field, _ in keys)

    def find(self, query: dict[str, Any]) -> list[dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self.docs if _matches(doc, query)]

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def insert_one(self, doc: dict[str, Any]) -> InsertOneResult:
        self.insert_calls += 1
        doc.setdefault("_id", ObjectId())
        for existing in self.docs:
            if existing["_id"] == doc["_id"]:
                raise DuplicateKeyError("E11000 duplicate key error _id")
            for fields in self.unique_keys:
                if all(existing.get(field) == doc.get(field) for field in fields):
                    raise DuplicateKeyError(f"E11000 duplicate key error {fields}")
        self.docs.append(copy.deepcopy(doc))
        return InsertOneResult(doc["_id"], True)

    def find_one_and_update(self, query: dict[str, Any], update: dict[str, Any], return_document: Any = None):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return copy.deepcopy(doc)
        return None

    def find_one_and_delete(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for index, doc in enumerate(self.docs):
            if _matches(doc, query):
                return self.docs.pop(index)
        return None

    def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> UpdateResult:
        modified = 0
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                modified += 1
        return UpdateResult({"n": modified, "nModified": modified}, True)

    def count_documents(self, query: dict[str, Any]) -> int:
        return sum(1 for doc in self.docs if _matches(doc, query))


class _FakeAdmin:
    def __init__(self) -> None:
        self.available = True

    def command(self, name: str) -> dict[str, Any]:
        if not self.available:
            raise ConnectionError("server selection timeout")
        return {"ok": 1}


class _FakeClient:
    def __init__(self) -> None:
        self.admin = _FakeAdmin()


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}
        self.client = _FakeClient()

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


class RecordingListener:
    def __init__(self, is_open: bool = True, fail: bool = False) -> None:
        self.is_open = is_open
        self.fail = fail
        self.messages: list[str] = []

    def send_text(self, message: str) -> None:
        if self.fail:
            raise ConnectionResetError("socket closed by peer")
        self.messages.append(message)

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(message) for message in self.messages]

    @property
    def event_types(self) -> list[str]:
        return [event["type"] for event in self.events]


class StubCompletionClient:
    def __init__(self, payload: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.payload = payload or {}
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return True

    def complete(self, system_prompt: str, user_prompt: str, schema_hint: dict | None = None) -> dict[str, Any]:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return dict(self.payload)


def incident_doc(**overrides: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "_id": ObjectId(),
        "type": "Flood",
        "status": "Active",
        "description": "River overflowing near the bridge",
        "needs": ["Water", "Shelter"],
        "location": {"type": "Point", "coordinates": [-122.4194, 37.7749]},
        "dispatched": False,
    }
    doc.update(overrides)
    return doc


def make_incident(**overrides: Any):
    return normalize_incident(incident_doc(**overrides))


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def incidents(database: FakeDatabase) -> IncidentRepository:
    return IncidentRepository(database)


@pytest.fixture
def missions(database: FakeDatabase) -> MissionRepository:
    repo = MissionRepository(database)
    repo.ensure_indexes()
    return repo


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def broadcaster(listener: RecordingListener) -> Broadcaster:
    hub = Broadcaster()
    hub.register(listener)
    return hub


@pytest.fixture
def synthesizer(missions: MissionRepository, broadcaster: Broadcaster) -> MissionSynthesizer:
    return MissionSynthesizer(missions, broadcaster, MissionEnricher(None))
