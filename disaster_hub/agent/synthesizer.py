from __future__ import annotations

"""
Mission synthesis: one mission per incident need, created at most once.

There is no lock around the "look up by name, then insert" sequence. Two callers
(the dispatch trigger and the background sweeper) may race for the same need;
the unique (incident_id, name) index makes the loser's insert fail, and the
loser then returns the winner's record instead of creating a duplicate.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from disaster_hub.agent.errors import (
    GenerationFailed,
    LookupInconsistency,
    MissionAgentError,
    PersistenceFailed,
    PreconditionFailed,
)
from disaster_hub.ai.enrichment import MissionEnricher
from disaster_hub.domain.models import Incident, Mission, MissionTimeline
from disaster_hub.domain.normalizer import (
    build_comms_channel,
    build_mission_name,
    determine_priority,
    generate_mission_id,
    resolve_needs,
)
from disaster_hub.observability.logging import agent_context
from disaster_hub.publisher.broadcaster import MISSION_CREATED, Broadcaster, reload_event
from disaster_hub.storage.repository import DuplicateMission, MissionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NeedFailure:
    need: str
    error: Exception


@dataclass
class SynthesisResult:
    incident_id: str
    missions: list[Mission] = field(default_factory=list)
    created: int = 0
    failures: list[NeedFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            needs = ", ".join(failure.need for failure in self.failures)
            raise GenerationFailed(
                f"mission generation failed for {len(self.failures)} need(s) of incident "
                f"{self.incident_id}: {needs}",
                missions=list(self.missions),
                failures=list(self.failures),
            )


class MissionSynthesizer:
    def __init__(
        self,
        missions: MissionRepository,
        broadcaster: Broadcaster,
        enricher: MissionEnricher,
    ) -> None:
        self._missions = missions
        self._broadcaster = broadcaster
        self._enricher = enricher

    def synthesize(self, incident: Incident) -> SynthesisResult:
        """
        Ensures a mission exists for every need of the incident.

        Needs whose mission already exists are returned as stored. A failure on one
        need is collected in the result and does not stop the others; missions that
        were persisted stay persisted. Raises PreconditionFailed when the incident
        has no location and GenerationFailed when the existing missions cannot be read.
        """
        if incident.location is None:
            raise PreconditionFailed(f"incident {incident.incident_id} has no location")

        incident_id = incident.incident_id.canonical()
        result = SynthesisResult(incident_id=incident_id)

        try:
            existing = self._missions.find_for_incident(incident_id)
        except Exception as exc:  # noqa: BLE001
            raise GenerationFailed(f"existing mission lookup failed for incident {incident_id}: {exc}") from exc

        if existing:
            logger.info(
                "incident already has missions, filling gaps only | incident_id=%s existing=%d",
                incident_id,
                len(existing),
            )

        needs = resolve_needs(incident)
        priority = determine_priority(incident)
        created_at = datetime.now(timezone.utc).isoformat()
        logger.info(
            "synthesizing missions | incident_id=%s type=%s needs=%s priority=%s",
            incident_id,
            incident.incident_type,
            needs,
            priority,
        )

        for need in needs:
            try:
                mission, is_new = self._ensure_mission(incident, need, priority, created_at)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "mission creation failed | incident_id=%s need=%s error=%s",
                    incident_id,
                    need,
                    exc,
                    exc_info=not isinstance(exc, MissionAgentError),
                    extra=agent_context(incident_id=incident_id, need=need),
                )
                result.failures.append(NeedFailure(need=need, error=exc))
                continue

            result.missions.append(mission)
            if is_new:
                result.created += 1
                self._safe_broadcast({"type": MISSION_CREATED, "data": mission.to_document()})

        self._safe_broadcast(reload_event())

        logger.info(
            "synthesis complete | incident_id=%s missions=%d created=%d failed=%d",
            incident_id,
            len(result.missions),
            result.created,
            len(result.failures),
        )
        return result

    def _ensure_mission(
        self,
        incident: Incident,
        need: str,
        priority: str,
        created_at: str,
    ) -> tuple[Mission, bool]:
        incident_id = incident.incident_id.canonical()
        name = build_mission_name(need, incident.incident_type)

        stored = self._missions.find_by_name(incident_id, name)
        if stored is not None:
            logger.info("mission already exists | incident_id=%s name=%s", incident_id, name)
            return Mission.from_document(stored), False

        mission_id = generate_mission_id()
        enrichment = self._enricher.enrich(incident, need)

        mission = Mission(
            mission_id=mission_id,
            incident_id=incident_id,
            name=name,
            priority=priority,
            description=enrichment.description,
            location=incident.location,
            timeline=MissionTimeline(created_at=created_at),
            confidence_score=enrichment.confidence_score,
            match_reasoning=enrichment.reasoning,
            comms_channel=build_comms_channel(incident_id),
        )

        try:
            insert_result = self._missions.insert(mission.to_document())
        except DuplicateMission:
            stored = self._missions.find_by_name(incident_id, name)
            if stored is None:
                raise LookupInconsistency(
                    f"duplicate insert reported but no mission found | incident_id={incident_id} name={name}"
                )
            logger.info("mission created concurrently, using stored one | incident_id=%s name=%s", incident_id, name)
            return Mission.from_document(stored), False

        if not insert_result.acknowledged:
            raise PersistenceFailed(f"mission insert not acknowledged | mission_id={mission_id}")
        if insert_result.inserted_id is None:
            raise PersistenceFailed(f"mission insert returned no id | mission_id={mission_id}")

        stored = self._reload(mission_id, insert_result.inserted_id, incident_id, name)
        if stored is None:
            raise LookupInconsistency(
                f"mission inserted but not found on re-read | mission_id={mission_id} "
                f"inserted_id={insert_result.inserted_id}"
            )

        logger.info(
            "mission created | incident_id=%s mission_id=%s name=%s degraded_enrichment=%s",
            incident_id,
            stored["_id"],
            name,
            enrichment.degraded,
            extra=agent_context(incident_id=incident_id, mission_id=stored["_id"], need=need),
        )
        return Mission.from_document(stored), True

    def _reload(self, mission_id: str, inserted_id: Any, incident_id: str, name: str) -> dict[str, Any] | None:
        stored = self._missions.find(mission_id)
        if stored is None and str(inserted_id) != mission_id:
            stored = self._missions.find(inserted_id)
        if stored is None:
            stored = self._missions.find_by_name(incident_id, name)
        return stored

    def _safe_broadcast(self, event: dict[str, Any]) -> None:
        try:
            self._broadcaster.broadcast(event)
        except Exception as exc:  # noqa: BLE001
            logger.error("broadcast failed (ignored) | type=%s error=%s", event.get("type"), exc)
