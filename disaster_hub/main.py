from __future__ import annotations

import argparse
import logging
import sys

from disaster_hub.bootstrap import build_runtime, load_environment
from disaster_hub.config import Settings
from disaster_hub.observability.health import is_healthy
from disaster_hub.observability.logging import setup_logging

logger = logging.getLogger("disaster_hub")

# the health file must be younger than three sweep intervals
HEALTH_MAX_AGE_INTERVALS = 3


def run_once(settings: Settings) -> int:
    runtime = build_runtime(settings)
    report = runtime.sweeper.sweep()
    logger.info("one-shot sweep finished | %s", report.summary())
    return 1 if report.fatal_error else 0


def backfill_dispatched(settings: Settings) -> int:
    runtime = build_runtime(settings)
    count = runtime.incidents.backfill_dispatched_flag()
    logger.info("dispatched backfill complete | updated=%d total=%d", count, runtime.incidents.count())
    return 0


def healthcheck(settings: Settings) -> int:
    max_age = settings.mission_agent_interval_seconds * HEALTH_MAX_AGE_INTERVALS
    return 0 if is_healthy(max_age) else 1


def serve(settings: Settings) -> None:
    import uvicorn

    from disaster_hub.api.server import create_app

    runtime = build_runtime(settings)
    logger.info(
        "starting server | host=%s port=%d mission_agent=%s interval=%ss",
        settings.host,
        settings.port,
        settings.mission_agent_enabled,
        settings.mission_agent_interval_seconds,
    )
    uvicorn.run(create_app(runtime), host=settings.host, port=settings.port, log_config=None)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Disaster Hub API and mission agent")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--once", action="store_true", help="run one mission sweep over all incidents and exit")
    group.add_argument(
        "--backfill-dispatched",
        action="store_true",
        help="set dispatched=false on incidents that lack the field and exit",
    )
    group.add_argument(
        "--healthcheck",
        action="store_true",
        help="exit 0 if the sweeper refreshed the health file recently",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_environment()
    args = parse_args(argv)
    settings = Settings.from_env()

    setup_logging(level=settings.log_level, json_logs=settings.json_logs)

    if args.healthcheck:
        return healthcheck(settings)

    if args.backfill_dispatched:
        return backfill_dispatched(settings)

    if args.once:
        try:
            return run_once(settings)
        except Exception as exc:  # noqa: BLE001
            logger.error("one-shot run failed | error=%s", exc)
            return 1

    serve(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
