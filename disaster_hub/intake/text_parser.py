from __future__ import annotations

import logging
from typing import Any

from disaster_hub.ai.completion_client import CompletionClient, CompletionError
from disaster_hub.ai.prompt_templates import INCIDENT_SCHEMA, INTAKE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = {"type": "Point", "coordinates": [-122.4194, 37.7749]}
DEFAULT_STATUS = "Active"


class IntakeFailed(Exception):
    """The free-text report could not be turned into an incident."""


def _normalize_parsed_incident(parsed: dict[str, Any]) -> dict[str, Any]:
    incident = dict(parsed)
    # new incidents are never dispatched by intake
    incident["dispatched"] = False

    location = incident.get("location")
    if not isinstance(location, dict) or not location.get("coordinates"):
        incident["location"] = dict(DEFAULT_LOCATION, coordinates=list(DEFAULT_LOCATION["coordinates"]))

    if not isinstance(incident.get("needs"), list):
        incident["needs"] = []

    if not incident.get("status"):
        incident["status"] = DEFAULT_STATUS
    return incident


def parse_incident_description(client: CompletionClient, description: str) -> dict[str, Any]:
    """Turns a natural language report into an incident document ready to insert."""
    if not isinstance(description, str) or not description.strip():
        raise ValueError("Description is required and must be a non-empty string")

    try:
        parsed = client.complete(INTAKE_SYSTEM_PROMPT, description.strip(), INCIDENT_SCHEMA)
    except CompletionError as exc:
        logger.error("incident intake failed | error=%s", exc)
        raise IntakeFailed(f"Failed to parse incident: {exc}") from exc

    incident = _normalize_parsed_incident(parsed)
    logger.info(
        "incident parsed from text | type=%s needs=%s status=%s",
        incident.get("type"),
        incident["needs"],
        incident["status"],
    )
    return incident
