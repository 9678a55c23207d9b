from __future__ import annotations

from typing import Any

ENRICHMENT_FIELDS = ("description", "reasoning", "confidence_score")


def validate_enrichment(payload: Any) -> tuple[bool, str]:
    """
    Checks a model answer for mission enrichment.
    Missing fields are allowed (they fall back individually); wrong types are not.
    """
    if not isinstance(payload, dict):
        return False, f"not_an_object ({type(payload).__name__})"
    if not any(payload.get(name) not in (None, "") for name in ENRICHMENT_FIELDS):
        return False, "no_enrichment_fields"

    for name in ("description", "reasoning"):
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            return False, f"{name}_not_text"

    confidence = payload.get("confidence_score")
    if confidence is None:
        return True, "ok"
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return False, f"confidence_not_numeric ({confidence!r})"
    if not 0.0 <= float(confidence) <= 1.0:
        return False, f"confidence_out_of_range ({confidence})"
    return True, "ok"
