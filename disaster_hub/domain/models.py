from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from disaster_hub.domain.identifiers import DocumentId

GENERAL_RESPONSE_NEED = "General Response"

MISSION_STATUS_PENDING = "Pending"
WORKFLOW_STEP_CREATED = "Created"

PRIORITY_HIGH = "High"
PRIORITY_MEDIUM = "Medium"


@dataclass(frozen=True)
class Incident:
    incident_id: DocumentId
    incident_type: str
    status: str
    description: str
    needs: tuple[str, ...]
    location: dict[str, Any] | None
    dispatched: bool


@dataclass(frozen=True)
class Enrichment:
    description: str
    reasoning: str
    confidence_score: float
    degraded: bool = False


@dataclass(frozen=True)
class MissionTimeline:
    created_at: str
    eoc_approved_at: str | None = None
    volunteer_accepted_at: str | None = None
    completed_at: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "created_at": self.created_at,
            "eoc_approved_at": self.eoc_approved_at,
            "volunteer_accepted_at": self.volunteer_accepted_at,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class Mission:
    mission_id: str
    incident_id: str
    name: str
    priority: str
    description: str
    location: dict[str, Any] | None
    timeline: MissionTimeline
    confidence_score: float
    match_reasoning: str
    comms_channel: str = ""
    status: str = MISSION_STATUS_PENDING
    workflow_step: str = WORKFLOW_STEP_CREATED
    volunteer_id: Any = None
    assigned_resources: list[Any] = field(default_factory=list)
    # record as read from the store, unknown fields included
    stored: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def to_document(self) -> dict[str, Any]:
        if self.stored is not None:
            return dict(self.stored)
        return {
            "_id": self.mission_id,
            "incident_id": self.incident_id,
            "volunteer_id": self.volunteer_id,
            "assigned_resources": list(self.assigned_resources),
            "workflow_step": self.workflow_step,
            "priority": self.priority,
            "comms_channel": self.comms_channel,
            "location": self.location,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "timeline": self.timeline.to_document(),
            "ai_metadata": {
                "confidence_score": self.confidence_score,
                "match_reasoning": self.match_reasoning,
            },
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Mission":
        timeline = doc.get("timeline") or {}
        ai_metadata = doc.get("ai_metadata") or {}
        return cls(
            mission_id=str(doc["_id"]),
            incident_id=str(doc.get("incident_id") or ""),
            name=doc.get("name") or "",
            priority=doc.get("priority") or "",
            description=doc.get("description") or "",
            location=doc.get("location"),
            timeline=MissionTimeline(
                created_at=timeline.get("created_at") or "",
                eoc_approved_at=timeline.get("eoc_approved_at"),
                volunteer_accepted_at=timeline.get("volunteer_accepted_at"),
                completed_at=timeline.get("completed_at"),
            ),
            confidence_score=float(ai_metadata.get("confidence_score") or 0.0),
            match_reasoning=ai_metadata.get("match_reasoning") or "",
            comms_channel=doc.get("comms_channel") or "",
            status=doc.get("status") or MISSION_STATUS_PENDING,
            workflow_step=doc.get("workflow_step") or WORKFLOW_STEP_CREATED,
            volunteer_id=doc.get("volunteer_id"),
            assigned_resources=list(doc.get("assigned_resources") or []),
            stored=dict(doc),
        )
