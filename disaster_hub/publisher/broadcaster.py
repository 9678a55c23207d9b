from __future__ import annotations

"""
Process-wide fan-out of JSON events to connected listeners.

Delivery is best effort and at-most-once: the event is serialized once, sent to
every open listener, and a failing listener is dropped without affecting the
others. Nothing is persisted or replayed.
"""

import json
import logging
import threading
from datetime import date, datetime
from typing import Any, Protocol

from bson import ObjectId

logger = logging.getLogger(__name__)

MISSION_CREATED = "mission_created"
MISSION_UPDATED = "mission_updated"
MISSION_DELETED = "mission_deleted"
INCIDENT_CREATED = "incident_created"
INCIDENT_UPDATED = "incident_updated"
INCIDENT_DELETED = "incident_deleted"
VOLUNTEER_UPDATED = "volunteer_updated"
RELOAD = "reload"
CONNECTED = "connected"


class Listener(Protocol):
    @property
    def is_open(self) -> bool: ...

    def send_text(self, message: str) -> None: ...


def _json_default(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def serialize_event(event: dict[str, Any]) -> str:
    return json.dumps(event, ensure_ascii=False, default=_json_default)


def to_jsonable(value: Any) -> Any:
    """Plain JSON types only: ObjectId and datetime values become strings."""
    return json.loads(json.dumps(value, default=_json_default))


def reload_event() -> dict[str, Any]:
    return {"type": RELOAD, "reload": True}


class Broadcaster:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def register(self, listener: Listener) -> int:
        with self._lock:
            self._listeners.append(listener)
            return len(self._listeners)

    def unregister(self, listener: Listener) -> int:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
            return len(self._listeners)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def broadcast(self, event: dict[str, Any]) -> int:
        """Sends the event to every open listener. Returns the number of successful sends."""
        with self._lock:
            listeners = list(self._listeners)

        event_type = event.get("type", "unknown")
        if not listeners:
            logger.debug("broadcast skipped, no listeners | type=%s", event_type)
            return 0

        message = serialize_event(event)
        sent = 0
        failed: list[Listener] = []

        for listener in listeners:
            if not listener.is_open:
                failed.append(listener)
                continue
            try:
                listener.send_text(message)
                sent += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("broadcast to listener failed | type=%s error=%s", event_type, exc)
                failed.append(listener)

        if failed:
            with self._lock:
                for listener in failed:
                    if listener in self._listeners:
                        self._listeners.remove(listener)

        logger.info(
            "broadcast complete | type=%s sent=%d dropped=%d bytes=%d",
            event_type,
            sent,
            len(failed),
            len(message.encode("utf-8")),
        )
        return sent

    def send_to(self, listener: Listener, event: dict[str, Any]) -> bool:
        try:
            listener.send_text(serialize_event(event))
        except Exception as exc:  # noqa: BLE001
            logger.warning("direct send failed | type=%s error=%s", event.get("type"), exc)
            return False
        return True
