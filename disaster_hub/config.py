from __future__ import annotations

import os
from dataclasses import dataclass


def _parse_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str
    mongo_db_name: str
    llm_provider: str
    fireworks_api_key: str
    fireworks_model: str
    fireworks_base_url: str
    deepseek_api_key: str
    deepseek_model: str
    deepseek_base_url: str
    openrouter_api_key: str
    openrouter_model: str
    openrouter_base_url: str
    openrouter_site_url: str
    openrouter_app_name: str
    enrichment_timeout_seconds: float
    mission_agent_enabled: bool
    mission_agent_interval_seconds: float
    host: str
    port: int
    log_level: str
    json_logs: bool

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
            mongo_db_name=os.getenv("MONGO_DB_NAME", "disasterhub"),
            llm_provider=os.getenv("LLM_PROVIDER", "auto").strip().lower(),
            fireworks_api_key=os.getenv("FIREWORKS_API_KEY", ""),
            fireworks_model=os.getenv("FIREWORKS_MODEL", "accounts/fireworks/models/deepseek-v3p1"),
            fireworks_base_url=os.getenv("FIREWORKS_BASE_URL", "https://api.fireworks.ai/inference/v1"),
            deepseek_api_key=os.getenv("DEEPSEEK_API_KEY", ""),
            deepseek_model=os.getenv("DEEPSEEK_MODEL", "deepseek-chat"),
            deepseek_base_url=os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/v1"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            openrouter_model=os.getenv("OPENROUTER_MODEL", "deepseek/deepseek-chat"),
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            openrouter_site_url=os.getenv("OPENROUTER_SITE_URL", "https://github.com/disasterhub/disaster-hub"),
            openrouter_app_name=os.getenv("OPENROUTER_APP_NAME", "disaster_hub"),
            enrichment_timeout_seconds=_parse_float("ENRICHMENT_TIMEOUT_SECONDS", 20.0),
            mission_agent_enabled=_parse_bool("MISSION_AGENT_ENABLED", True),
            mission_agent_interval_seconds=_parse_float("MISSION_AGENT_INTERVAL_SECONDS", 300.0),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            json_logs=_parse_bool("LOG_FORMAT_JSON", False),
        )
