from __future__ import annotations

"""
File-based liveness signal for the container healthcheck.

Every completed sweep refreshes HEALTH_FILE. `python -m disaster_hub.main
--healthcheck` exits non-zero when the file is missing or older than the
allowed age, which means the sweeper thread has stalled.
"""

import logging
import os
import time
from pathlib import Path

logger = logging.getLogger(__name__)

HEALTH_FILE = Path(os.getenv("HEALTH_FILE", "/tmp/disaster_hub_health"))


def touch_health(path: Path | None = None) -> None:
    target = path or HEALTH_FILE
    try:
        target.write_text(str(time.time()))
    except OSError as exc:
        logger.warning("health touch failed: %s", exc)


def is_healthy(max_age_seconds: float, path: Path | None = None) -> bool:
    target = path or HEALTH_FILE
    if not target.exists():
        return False
    age = time.time() - target.stat().st_mtime
    return age < max_age_seconds
