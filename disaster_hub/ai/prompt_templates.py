from __future__ import annotations

from typing import Any

from disaster_hub.domain.models import Incident

ENRICHMENT_SYSTEM_PROMPT = (
    "You are an emergency response coordinator. "
    "Generate detailed mission descriptions and reasoning in JSON format."
)

ENRICHMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "reasoning": {"type": "string"},
        "confidence_score": {"type": "number", "minimum": 0, "maximum": 1},
    },
    "required": ["description", "reasoning", "confidence_score"],
}

INTAKE_SYSTEM_PROMPT = (
    "You are an emergency response system that extracts structured information from "
    "natural language incident reports. Extract all relevant details including incident type, "
    "location (latitude and longitude if mentioned, or estimate based on context), description, "
    "required resources/needs, status, and metadata. If location is not provided, use default "
    "coordinates (37.7749, -122.4194) for San Francisco. Always set dispatched to false."
)

INCIDENT_TYPES = (
    "Power Outage, Flood, Fire, Earthquake, Medical Emergency, Chemical Spill, Bridge Collapse, "
    "Tornado, Gas Leak, Building Collapse, Traffic Accident, Water Main Break, Landslide, or Other"
)

INCIDENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "description": f"Type of incident (e.g., {INCIDENT_TYPES})"},
        "location": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": ["Point"]},
                "coordinates": {
                    "type": "array",
                    "items": {"type": "number"},
                    "minItems": 2,
                    "maxItems": 2,
                    "description": "Longitude and latitude [lng, lat] in GeoJSON format",
                },
            },
            "required": ["type", "coordinates"],
        },
        "description": {"type": "string", "description": "Detailed description of the incident"},
        "needs": {
            "type": "array",
            "items": {"type": "string"},
            "description": "List of required resources, personnel, or equipment needed",
        },
        "status": {"type": "string", "enum": ["Active", "Triaged", "Resolved"]},
        "dispatched": {"type": "boolean"},
        "metadata": {
            "type": "object",
            "properties": {
                "source": {"type": "string"},
                "reliability_score": {"type": "number", "minimum": 0, "maximum": 1},
            },
        },
    },
    "required": ["type", "location", "description", "status", "dispatched"],
}


def _describe_location(incident: Incident) -> str:
    coordinates = (incident.location or {}).get("coordinates")
    if not coordinates:
        return "Unknown"
    return "Coordinates: " + ",".join(str(value) for value in coordinates)


def build_enrichment_prompt(incident: Incident, need: str) -> str:
    return (
        f"Generate a detailed mission description and reasoning for a {need} mission "
        f"related to a {incident.incident_type} incident.\n\n"
        "Incident Details:\n"
        f"- Type: {incident.incident_type}\n"
        f"- Status: {incident.status}\n"
        f"- Description: {incident.description or 'No additional details'}\n"
        f"- Location: {_describe_location(incident)}\n\n"
        f"Required Resource/Need: {need}\n\n"
        "Generate:\n"
        "1. A detailed mission description (2-3 sentences)\n"
        "2. Reasoning for why this mission is important\n"
        "3. Confidence score (0.0-1.0) for mission relevance\n\n"
        "Return a JSON object with: description, reasoning, confidence_score"
    )
