from __future__ import annotations

"""
MongoDB repositories for incidents and missions.

Identifiers are probed in both representations (ObjectId and plain string),
because historical incident data mixes them. Missions carry a unique index on
(incident_id, name) so that concurrent mission creation for the same need
fails on the second insert instead of silently duplicating the record.
"""

import logging
from typing import Any

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from pymongo.results import InsertOneResult
from pymongo.write_concern import WriteConcern

from disaster_hub.domain.identifiers import DocumentId

logger = logging.getLogger(__name__)

INCIDENT_COLLECTION = "incident"
MISSION_COLLECTION = "mission"
MISSION_DEDUP_INDEX = "incident_id_name_unique"


class DuplicateMission(Exception):
    """A mission with the same (incident_id, name) is already stored."""


def connect(uri: str, db_name: str) -> Database:
    client: MongoClient = MongoClient(
        uri,
        maxPoolSize=10,
        minPoolSize=1,
        connectTimeoutMS=30000,
        socketTimeoutMS=45000,
        serverSelectionTimeoutMS=30000,
        retryWrites=True,
        retryReads=True,
    )
    return client[db_name]


def ping(database: Database) -> bool:
    try:
        database.client.admin.command("ping")
    except Exception as exc:  # noqa: BLE001
        logger.warning("database ping failed: %s", exc)
        return False
    return True


class IncidentRepository:
    def __init__(self, database: Database) -> None:
        self._collection = database[INCIDENT_COLLECTION]

    def list_all(self) -> list[dict[str, Any]]:
        return list(self._collection.find({}))

    def find(self, incident_id: Any) -> dict[str, Any] | None:
        for candidate in DocumentId.parse(incident_id).candidates():
            doc = self._collection.find_one({"_id": candidate})
            if doc is not None:
                return doc
        return None

    def insert(self, doc: dict[str, Any]) -> dict[str, Any] | None:
        result = self._collection.insert_one(doc)
        return self._collection.find_one({"_id": result.inserted_id})

    def update(self, incident_id: Any, patch: dict[str, Any]) -> dict[str, Any] | None:
        changes = {key: value for key, value in patch.items() if key != "_id"}
        for candidate in DocumentId.parse(incident_id).candidates():
            doc = self._collection.find_one_and_update(
                {"_id": candidate},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
            if doc is not None:
                return doc
        return None

    def delete(self, incident_id: Any) -> dict[str, Any] | None:
        for candidate in DocumentId.parse(incident_id).candidates():
            doc = self._collection.find_one_and_delete({"_id": candidate})
            if doc is not None:
                return doc
        return None

    def backfill_dispatched_flag(self) -> int:
        """Sets dispatched=false on incidents created before the field existed."""
        missing = {"dispatched": {"$exists": False}}
        if self._collection.count_documents(missing) == 0:
            return 0
        result = self._collection.update_many(missing, {"$set": {"dispatched": False}})
        return result.modified_count

    def count(self) -> int:
        return self._collection.count_documents({})


class MissionRepository:
    def __init__(self, database: Database) -> None:
        self._collection = database[MISSION_COLLECTION].with_options(
            write_concern=WriteConcern(w=1, wtimeout=5000)
        )

    def ensure_indexes(self) -> None:
        self._collection.create_index(
            [("incident_id", ASCENDING), ("name", ASCENDING)],
            name=MISSION_DEDUP_INDEX,
            unique=True,
        )

    def find_for_incident(self, incident_id: str) -> list[dict[str, Any]]:
        return list(self._collection.find({"incident_id": incident_id}))

    def find_by_name(self, incident_id: str, name: str) -> dict[str, Any] | None:
        return self._collection.find_one({"incident_id": incident_id, "name": name})

    def find(self, mission_id: Any) -> dict[str, Any] | None:
        for candidate in DocumentId.parse(mission_id).candidates():
            doc = self._collection.find_one({"_id": candidate})
            if doc is not None:
                return doc
        return None

    def insert(self, doc: dict[str, Any]) -> InsertOneResult:
        try:
            return self._collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateMission(
                f"mission already stored | incident_id={doc.get('incident_id')} name={doc.get('name')}"
            ) from exc

    def count(self) -> int:
        return self._collection.count_documents({})
