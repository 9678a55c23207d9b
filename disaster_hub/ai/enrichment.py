from __future__ import annotations

import logging

from disaster_hub.agent.errors import EnrichmentDegraded
from disaster_hub.ai.completion_client import CompletionClient
from disaster_hub.ai.prompt_templates import (
    ENRICHMENT_SCHEMA,
    ENRICHMENT_SYSTEM_PROMPT,
    build_enrichment_prompt,
)
from disaster_hub.ai.validator import validate_enrichment
from disaster_hub.domain.models import Enrichment, Incident

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.75
DEFAULT_CONFIDENCE = 0.85


def template_description(incident: Incident, need: str) -> str:
    details = incident.description or "No additional details."
    return f"Provide {need} support for {incident.incident_type} incident. {details}"


def fallback_enrichment(incident: Incident, need: str) -> Enrichment:
    return Enrichment(
        description=template_description(incident, need),
        reasoning=(
            f'Auto-generated mission for "{need}" resource based on incident needs. '
            f"Incident type: {incident.incident_type}"
        ),
        confidence_score=FALLBACK_CONFIDENCE,
        degraded=True,
    )


class MissionEnricher:
    """Adds generated description, reasoning and confidence to a mission. Never raises."""

    def __init__(self, client: CompletionClient | None) -> None:
        self._client = client

    def enrich(self, incident: Incident, need: str) -> Enrichment:
        if self._client is None or not self._client.is_available():
            return fallback_enrichment(incident, need)

        try:
            return self._enrich_with_model(incident, need)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "enrichment failed, using template | incident_id=%s need=%s error=%s",
                incident.incident_id,
                need,
                exc,
            )
            return fallback_enrichment(incident, need)

    def _enrich_with_model(self, incident: Incident, need: str) -> Enrichment:
        payload = self._client.complete(
            ENRICHMENT_SYSTEM_PROMPT,
            build_enrichment_prompt(incident, need),
            ENRICHMENT_SCHEMA,
        )
        valid, reason = validate_enrichment(payload)
        if not valid:
            raise EnrichmentDegraded(reason)

        confidence = payload.get("confidence_score")
        return Enrichment(
            description=payload.get("description") or template_description(incident, need),
            reasoning=payload.get("reasoning")
            or f'Auto-generated mission for "{need}" resource based on incident needs.',
            confidence_score=float(confidence) if confidence is not None else DEFAULT_CONFIDENCE,
        )
