from __future__ import annotations

"""
Thin HTTP and WebSocket surface.

/ws                         - live event stream (mission_created, incident_updated, reload, ...)
GET /api/incident, GET /api/incident/{id}
POST /api/incident          - manual intake, dispatched defaults to false
PUT /api/incident/{id}      - incident update; a dispatch transition creates missions
POST /api/incident/from-text
DELETE /api/incident/{id}
POST /api/mission-agent/sweep
GET /health

Mission synthesis never changes the status of an incident request: its errors
are logged by the dispatch trigger and the response reflects only the store
operation itself.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import Body, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from disaster_hub.bootstrap import Runtime
from disaster_hub.domain.normalizer import normalize_incident
from disaster_hub.intake.text_parser import IntakeFailed, parse_incident_description
from disaster_hub.publisher.broadcaster import (
    CONNECTED,
    INCIDENT_CREATED,
    INCIDENT_DELETED,
    INCIDENT_UPDATED,
    to_jsonable,
)
from disaster_hub.publisher.websocket_listener import WebSocketListener
from disaster_hub.storage.repository import ping

logger = logging.getLogger(__name__)


class IncidentTextRequest(BaseModel):
    description: str = ""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(runtime: Runtime, start_sweeper: bool | None = None) -> FastAPI:
    settings = runtime.settings
    if start_sweeper is None:
        start_sweeper = settings.mission_agent_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start_sweeper:
            runtime.sweeper.start(settings.mission_agent_interval_seconds)
        yield
        runtime.sweeper.stop()

    app = FastAPI(title="Disaster Hub API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "database": "connected" if ping(runtime.database) else "error",
            "listeners": runtime.broadcaster.listener_count,
            "timestamp": _now(),
        }

    @app.websocket("/ws")
    async def events(websocket: WebSocket) -> None:
        await websocket.accept()
        listener = WebSocketListener(websocket, asyncio.get_running_loop())
        total = runtime.broadcaster.register(listener)
        logger.info("websocket connected | connection=%s total=%d", listener.connection_id, total)

        runtime.broadcaster.send_to(
            listener,
            {
                "type": CONNECTED,
                "message": "Connected to Disaster Hub WebSocket server",
                "timestamp": _now(),
            },
        )

        try:
            while True:
                message = await websocket.receive_text()
                logger.debug("websocket message | connection=%s size=%d", listener.connection_id, len(message))
        except WebSocketDisconnect as exc:
            logger.info("websocket disconnected | connection=%s code=%s", listener.connection_id, exc.code)
        finally:
            listener.close()
            runtime.broadcaster.unregister(listener)

    @app.get("/api/incident")
    def list_incidents() -> dict[str, Any]:
        documents = runtime.incidents.list_all()
        return {"success": True, "count": len(documents), "data": to_jsonable(documents)}

    @app.get("/api/incident/{incident_id}")
    def get_incident(incident_id: str) -> dict[str, Any]:
        doc = runtime.incidents.find(incident_id)
        if doc is None:
            raise HTTPException(status_code=404, detail="Incident not found")
        return {"success": True, "data": to_jsonable(doc)}

    @app.post("/api/incident", status_code=201)
    def create_incident(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        incident_doc = {key: value for key, value in payload.items() if key != "_id"}
        incident_doc.setdefault("dispatched", False)

        created = runtime.incidents.insert(incident_doc)
        runtime.broadcaster.broadcast({"type": INCIDENT_CREATED, "data": created})
        return {"success": True, "data": to_jsonable(created)}

    @app.put("/api/incident/{incident_id}")
    def update_incident(incident_id: str, patch: dict[str, Any] = Body(...)) -> dict[str, Any]:
        previous = runtime.dispatch_trigger.load_previous(incident_id)

        updated_doc = runtime.incidents.update(incident_id, patch)
        if updated_doc is None:
            raise HTTPException(status_code=404, detail="Incident not found")

        runtime.broadcaster.broadcast({"type": INCIDENT_UPDATED, "data": updated_doc})

        missions = runtime.dispatch_trigger.on_incident_updated(normalize_incident(updated_doc), previous)
        return {
            "success": True,
            "data": to_jsonable(updated_doc),
            "missions": to_jsonable([mission.to_document() for mission in missions]),
        }

    @app.post("/api/incident/from-text", status_code=201)
    def create_incident_from_text(request: IncidentTextRequest) -> dict[str, Any]:
        try:
            incident_doc = parse_incident_description(runtime.completion_client, request.description)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except IntakeFailed as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        created = runtime.incidents.insert(incident_doc)
        runtime.broadcaster.broadcast({"type": INCIDENT_CREATED, "data": created})
        return {
            "success": True,
            "data": to_jsonable(created),
            "message": "Incident created successfully from description",
        }

    @app.delete("/api/incident/{incident_id}")
    def delete_incident(incident_id: str) -> dict[str, Any]:
        deleted = runtime.incidents.delete(incident_id)
        if deleted is None:
            raise HTTPException(status_code=404, detail="Incident not found")

        runtime.broadcaster.broadcast({"type": INCIDENT_DELETED, "data": {"_id": incident_id}})
        return {"success": True, "message": "Incident deleted successfully", "data": to_jsonable(deleted)}

    @app.post("/api/mission-agent/sweep")
    def run_sweep() -> dict[str, Any]:
        return runtime.sweeper.sweep().to_dict()

    return app
