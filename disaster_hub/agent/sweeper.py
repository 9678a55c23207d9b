from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from disaster_hub.agent.synthesizer import MissionSynthesizer
from disaster_hub.domain.models import Incident
from disaster_hub.domain.normalizer import (
    build_mission_name,
    has_explicit_needs,
    normalize_incident,
    resolve_needs,
)
from disaster_hub.observability.logging import agent_context
from disaster_hub.storage.repository import IncidentRepository, MissionRepository

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300


@dataclass
class SweepReport:
    checked: int = 0
    created: int = 0
    skipped: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0
    already_running: bool = False
    fatal_error: str = ""

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def summary(self) -> str:
        if self.already_running:
            return "skipped=already_running"
        return (
            f"checked={self.checked} | created={self.created} | skipped={self.skipped} | "
            f"errors={self.error_count} | duration_ms={self.duration_ms}"
        )

    def to_dict(self) -> dict[str, Any]:
        if self.already_running:
            return {"skipped": True}
        payload: dict[str, Any] = {
            "checked": self.checked,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.error_count,
            "duration": self.duration_ms,
        }
        if self.fatal_error:
            payload["error"] = self.fatal_error
        return payload


class BackgroundSweeper:
    """
    Periodically creates missions for incidents the dispatch path missed.

    Only one sweep runs at a time per instance; a sweep requested while another
    is in flight returns immediately with already_running=True.
    """

    def __init__(
        self,
        incidents: IncidentRepository,
        missions: MissionRepository,
        synthesizer: MissionSynthesizer,
        heartbeat: Callable[[], None] | None = None,
    ) -> None:
        self._incidents = incidents
        self._missions = missions
        self._synthesizer = synthesizer
        self._heartbeat = heartbeat
        self._sweep_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_lock.locked()

    @property
    def is_started(self) -> bool:
        return self._thread is not None

    def sweep(self) -> SweepReport:
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("sweep already running, skipping this cycle")
            return SweepReport(already_running=True)

        started = time.monotonic()
        report = SweepReport()
        try:
            self._sweep_all(report)
        finally:
            report.duration_ms = int((time.monotonic() - started) * 1000)
            self._sweep_lock.release()

        logger.info("sweep complete | %s", report.summary(), extra=agent_context(sweep=report.to_dict()))
        for incident_id, message in report.errors.items():
            logger.warning(
                "sweep error | incident_id=%s error=%s",
                incident_id,
                message,
                extra=agent_context(incident_id=incident_id),
            )

        if self._heartbeat is not None and not report.fatal_error:
            self._heartbeat()
        return report

    def _sweep_all(self, report: SweepReport) -> None:
        try:
            documents = self._incidents.list_all()
        except Exception as exc:  # noqa: BLE001
            logger.exception("sweep aborted, incidents unavailable | error=%s", exc)
            report.fatal_error = str(exc)
            return

        logger.info("sweep started | incidents=%d", len(documents))
        for doc in documents:
            report.checked += 1
            incident_key = str(doc.get("_id"))
            try:
                incident = normalize_incident(doc)
                incident_key = incident.incident_id.canonical()
                if self._should_skip(incident):
                    report.skipped += 1
                    continue

                logger.info(
                    "sweep creating missions | incident_id=%s type=%s dispatched=%s",
                    incident_key,
                    incident.incident_type,
                    incident.dispatched,
                )
                result = self._synthesizer.synthesize(incident)
                report.created += result.created
                result.raise_for_failures()
            except Exception as exc:  # noqa: BLE001
                report.errors[incident_key] = str(exc)

    def _should_skip(self, incident: Incident) -> bool:
        incident_id = incident.incident_id.canonical()

        if incident.location is None:
            logger.info("sweep skip, no location | incident_id=%s", incident_id)
            return True

        existing = self._missions.find_for_incident(incident_id)
        if existing:
            logger.debug("sweep skip, has missions | incident_id=%s count=%d", incident_id, len(existing))
            return True

        if all(
            self._missions.find_by_name(incident_id, build_mission_name(need, incident.incident_type))
            is not None
            for need in resolve_needs(incident)
        ):
            return True

        # explicit needs qualify even without a dispatch
        return not (incident.dispatched or has_explicit_needs(incident))

    def start(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Sweeps once now, then every interval_seconds on a daemon thread."""
        if self._thread is not None:
            logger.warning("sweeper already started")
            return

        # one stop event per timer thread
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval_seconds, self._stop_event),
            daemon=True,
            name="mission-sweeper",
        )
        self._thread.start()
        logger.info("sweeper started | interval=%ss", interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """Cancels the timer. A sweep in flight finishes; pass timeout to wait for it."""
        thread = self._thread
        if thread is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._thread = None
        if timeout is not None:
            thread.join(timeout)
        logger.info("sweeper stopped")

    def _run(self, interval_seconds: float, stop_event: threading.Event) -> None:
        self._run_cycle()
        while not stop_event.wait(interval_seconds):
            self._run_cycle()

    def _run_cycle(self) -> None:
        try:
            self.sweep()
        except Exception as exc:  # noqa: BLE001
            logger.exception("sweep cycle failed | error=%s", exc)
