from __future__ import annotations

import logging
from typing import Any

from disaster_hub.agent.errors import PreconditionFailed
from disaster_hub.agent.synthesizer import MissionSynthesizer
from disaster_hub.domain.models import Incident, Mission
from disaster_hub.domain.normalizer import normalize_incident
from disaster_hub.storage.repository import IncidentRepository

logger = logging.getLogger(__name__)


def was_just_dispatched(updated: Incident, previous: Incident | None) -> bool:
    return updated.dispatched is True and (previous is None or previous.dispatched is not True)


class DispatchTrigger:
    """
    Runs mission synthesis when an incident flips to dispatched.

    Mission creation is a side channel of the incident update: errors are logged
    here and never reach the caller.
    """

    def __init__(self, synthesizer: MissionSynthesizer, incidents: IncidentRepository | None = None) -> None:
        self._synthesizer = synthesizer
        self._incidents = incidents

    def load_previous(self, incident_id: Any) -> Incident | None:
        """Previous state for a pending update; None when it cannot be read (biases toward synthesis)."""
        if self._incidents is None:
            return None
        try:
            doc = self._incidents.find(incident_id)
            return normalize_incident(doc) if doc is not None else None
        except Exception as exc:  # noqa: BLE001
            logger.warning("previous incident state unavailable | incident_id=%s error=%s", incident_id, exc)
            return None

    def on_incident_updated(self, updated: Incident, previous: Incident | None) -> list[Mission]:
        if not was_just_dispatched(updated, previous):
            logger.debug(
                "no dispatch transition | incident_id=%s dispatched=%s previous_dispatched=%s",
                updated.incident_id,
                updated.dispatched,
                previous.dispatched if previous is not None else None,
            )
            return []

        logger.info("incident dispatched, creating missions | incident_id=%s", updated.incident_id)

        try:
            result = self._synthesizer.synthesize(updated)
        except PreconditionFailed as exc:
            logger.warning("dispatched incident rejected, data quality issue | %s", exc)
            return []
        except Exception as exc:  # noqa: BLE001
            logger.exception("mission synthesis failed | incident_id=%s error=%s", updated.incident_id, exc)
            return []

        for failure in result.failures:
            logger.error(
                "mission for need not created | incident_id=%s need=%s error=%s",
                updated.incident_id,
                failure.need,
                failure.error,
            )
        return result.missions
