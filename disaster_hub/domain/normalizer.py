from __future__ import annotations

import secrets
import string
import time
from typing import Any

from disaster_hub.domain.identifiers import DocumentId
from disaster_hub.domain.models import (
    GENERAL_RESPONSE_NEED,
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    Incident,
)

HIGH_PRIORITY_TYPES = frozenset(
    {"Fire", "Medical Emergency", "Building Collapse", "Gas Leak", "Chemical Spill"}
)
MEDIUM_PRIORITY_TYPES = frozenset({"Power Outage", "Flood", "Earthquake", "Bridge Collapse"})

_MISSION_ID_ALPHABET = string.ascii_lowercase + string.digits
_MISSION_ID_SUFFIX_LENGTH = 9


def _safe_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _normalize_needs(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    needs = [_safe_text(item) for item in raw]
    # dict.fromkeys keeps the first occurrence and the original order
    return tuple(dict.fromkeys(need for need in needs if need))


def normalize_incident(doc: dict[str, Any]) -> Incident:
    """Builds an Incident from a raw store document. Raises ValueError without _id."""
    location = doc.get("location")
    return Incident(
        incident_id=DocumentId.parse(doc.get("_id")),
        incident_type=_safe_text(doc.get("type")),
        status=_safe_text(doc.get("status")),
        description=_safe_text(doc.get("description")),
        needs=_normalize_needs(doc.get("needs")),
        location=location if isinstance(location, dict) and location else None,
        dispatched=doc.get("dispatched") is True,
    )


def resolve_needs(incident: Incident) -> list[str]:
    if incident.needs:
        return list(incident.needs)
    return [GENERAL_RESPONSE_NEED]


def has_explicit_needs(incident: Incident) -> bool:
    needs = resolve_needs(incident)
    return needs[0] != GENERAL_RESPONSE_NEED


def determine_priority(incident: Incident) -> str:
    """
    Incident-level priority. The type lists are checked before the status,
    so a Flood stays Medium even when the incident is Active.
    """
    if incident.incident_type in HIGH_PRIORITY_TYPES:
        return PRIORITY_HIGH
    if incident.incident_type in MEDIUM_PRIORITY_TYPES:
        return PRIORITY_MEDIUM
    if incident.status == "Active":
        return PRIORITY_HIGH
    return PRIORITY_MEDIUM


def build_mission_name(need: str, incident_type: str) -> str:
    return f"{need} - {incident_type} Incident"


def build_comms_channel(incident_id: str) -> str:
    return f"Incident_{incident_id[:8]}"


def generate_mission_id() -> str:
    """Time-ordered id with a random suffix: mission_<epoch ms>_<9 base36 chars>."""
    suffix = "".join(secrets.choice(_MISSION_ID_ALPHABET) for _ in range(_MISSION_ID_SUFFIX_LENGTH))
    return f"mission_{int(time.time() * 1000)}_{suffix}"
