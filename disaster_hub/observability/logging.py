from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

# structured fields the mission agent attaches through extra=agent_context(...)
AGENT_CONTEXT_FIELDS = ("incident_id", "mission_id", "need", "sweep")

_RECORD_FIELDS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "taskName",
    }
)


def agent_context(**fields: Any) -> dict[str, Any]:
    """
    Builds the extra= mapping for mission agent log calls.

    Unknown keys raise, None values are dropped, identifiers become strings:

        logger.info("mission created | ...", extra=agent_context(incident_id=oid, need="Water"))
    """
    unknown = set(fields) - set(AGENT_CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"unknown agent log fields: {sorted(unknown)}")
    return {
        key: value if isinstance(value, (dict, int, float)) else str(value)
        for key, value in fields.items()
        if value is not None
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line for Loki/ELK. Mission agent context goes under "agent",
    any other extra= field stays at the top level.

    {"ts":"2026-10-18T10:00:00Z","level":"INFO","logger":"disaster_hub.agent.synthesizer",
     "thread":"mission-sweeper","msg":"mission created | ...","agent":{"incident_id":"...","need":"Water"}}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }

        agent: dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in _RECORD_FIELDS or key.startswith("_"):
                continue
            if key in AGENT_CONTEXT_FIELDS:
                agent[key] = val
            else:
                payload[key] = val
        if agent:
            payload["agent"] = agent

        if record.exc_info:
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_logs: bool | None = None) -> None:
    """
    Installs a single stream handler on the root logger.

    json_logs=None picks JSON when LOG_FORMAT=json or stdout is not a TTY
    (the container case); the CLI passes LOG_FORMAT_JSON explicitly.
    """
    if json_logs is None:
        json_logs = os.getenv("LOG_FORMAT", "").lower() == "json" or not os.isatty(1)

    handler = logging.StreamHandler()
    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s")
        )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)

    # pymongo logs every heartbeat at DEBUG
    logging.getLogger("pymongo").setLevel(max(root.level, logging.INFO))
