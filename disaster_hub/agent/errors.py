from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from disaster_hub.agent.synthesizer import NeedFailure
    from disaster_hub.domain.models import Mission


class MissionAgentError(Exception):
    """Base class for mission agent failures."""


class PreconditionFailed(MissionAgentError):
    """The incident cannot produce missions as stored (no location)."""


class EnrichmentDegraded(MissionAgentError):
    """Enrichment output unusable. Always converted to the template fallback."""


class PersistenceFailed(MissionAgentError):
    """The store did not acknowledge a mission insert or echoed no id."""


class LookupInconsistency(MissionAgentError):
    """A mission insert succeeded but the record could not be read back."""


class GenerationFailed(MissionAgentError):
    def __init__(
        self,
        message: str,
        missions: list[Mission] | None = None,
        failures: list[NeedFailure] | None = None,
    ) -> None:
        super().__init__(message)
        self.missions = missions or []
        self.failures = failures or []
