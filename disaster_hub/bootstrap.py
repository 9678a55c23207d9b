from __future__ import annotations

import logging
from dataclasses import dataclass

from dotenv import load_dotenv
from pymongo.database import Database

from disaster_hub.agent.dispatch import DispatchTrigger
from disaster_hub.agent.sweeper import BackgroundSweeper
from disaster_hub.agent.synthesizer import MissionSynthesizer
from disaster_hub.ai.completion_client import CompletionClient
from disaster_hub.ai.enrichment import MissionEnricher
from disaster_hub.config import Settings
from disaster_hub.observability.health import touch_health
from disaster_hub.publisher.broadcaster import Broadcaster
from disaster_hub.storage.repository import IncidentRepository, MissionRepository, connect

logger = logging.getLogger(__name__)


def load_environment(path: str = ".env") -> None:
    """Loads .env without overriding variables already set in the environment."""
    load_dotenv(path, override=False)


@dataclass
class Runtime:
    settings: Settings
    database: Database
    incidents: IncidentRepository
    missions: MissionRepository
    broadcaster: Broadcaster
    completion_client: CompletionClient
    synthesizer: MissionSynthesizer
    dispatch_trigger: DispatchTrigger
    sweeper: BackgroundSweeper


def build_completion_client(settings: Settings) -> CompletionClient:
    provider_mode = settings.llm_provider

    if provider_mode == "auto":
        if settings.fireworks_api_key:
            provider_mode = "fireworks"
        elif settings.openrouter_api_key:
            provider_mode = "openrouter"
        else:
            provider_mode = "deepseek"

    extra_headers: dict[str, str] = {}
    if provider_mode == "openrouter":
        api_key = settings.openrouter_api_key
        model = settings.openrouter_model
        base_url = settings.openrouter_base_url
        extra_headers = {
            "HTTP-Referer": settings.openrouter_site_url,
            "X-Title": settings.openrouter_app_name,
        }
    elif provider_mode == "fireworks":
        api_key = settings.fireworks_api_key
        model = settings.fireworks_model
        base_url = settings.fireworks_base_url
    else:
        provider_mode = "deepseek"
        api_key = settings.deepseek_api_key
        model = settings.deepseek_model
        base_url = settings.deepseek_base_url

    if not api_key:
        logger.warning(
            "LLM provider %s has no API key, missions will use template descriptions",
            provider_mode,
        )

    logger.info(
        "LLM provider mode: %s -> active: %s | model: %s | base_url: %s",
        settings.llm_provider,
        provider_mode,
        model,
        base_url,
    )

    return CompletionClient(
        api_key=api_key,
        model=model,
        base_url=base_url,
        provider_name=provider_mode,
        extra_headers=extra_headers,
        timeout=settings.enrichment_timeout_seconds,
    )


def build_runtime(settings: Settings, database: Database | None = None) -> Runtime:
    if database is None:
        database = connect(settings.mongodb_uri, settings.mongo_db_name)

    incidents = IncidentRepository(database)
    missions = MissionRepository(database)
    try:
        missions.ensure_indexes()
    except Exception as exc:  # noqa: BLE001
        # existing duplicates block the unique index; dedup by name still applies
        logger.error("mission dedup index not created | error=%s", exc)

    broadcaster = Broadcaster()
    completion_client = build_completion_client(settings)
    synthesizer = MissionSynthesizer(missions, broadcaster, MissionEnricher(completion_client))

    return Runtime(
        settings=settings,
        database=database,
        incidents=incidents,
        missions=missions,
        broadcaster=broadcaster,
        completion_client=completion_client,
        synthesizer=synthesizer,
        dispatch_trigger=DispatchTrigger(synthesizer, incidents),
        sweeper=BackgroundSweeper(incidents, missions, synthesizer, heartbeat=touch_health),
    )
