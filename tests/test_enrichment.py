import logging

from conftest import StubCompletionClient, make_incident
from disaster_hub.ai.completion_client import CompletionError
from disaster_hub.ai.enrichment import MissionEnricher, fallback_enrichment


class _DisabledClient(StubCompletionClient):
    def is_available(self) -> bool:
        return False


def test_without_client_uses_template() -> None:
    incident = make_incident(type="Flood", description="")

    enrichment = MissionEnricher(None).enrich(incident, "Water")

    assert enrichment.degraded is True
    assert enrichment.confidence_score == 0.75
    assert enrichment.description == "Provide Water support for Flood incident. No additional details."
    assert enrichment.reasoning == (
        'Auto-generated mission for "Water" resource based on incident needs. Incident type: Flood'
    )


def test_disabled_client_is_not_called() -> None:
    client = _DisabledClient(payload={"description": "unused"})

    enrichment = MissionEnricher(client).enrich(make_incident(), "Water")

    assert enrichment.degraded is True
    assert client.calls == []


def test_prompt_mentions_need_and_incident() -> None:
    client = StubCompletionClient(payload={"description": "Bring pumps.", "confidence_score": 0.7})
    incident = make_incident(type="Flood", description="Basement flooding on 5th street")

    MissionEnricher(client).enrich(incident, "Pumps")

    _, user_prompt = client.calls[0]
    assert "Pumps" in user_prompt
    assert "Flood" in user_prompt
    assert "Basement flooding on 5th street" in user_prompt


def test_partial_answer_fills_missing_fields() -> None:
    client = StubCompletionClient(payload={"description": "Bring pumps."})

    enrichment = MissionEnricher(client).enrich(make_incident(), "Pumps")

    assert enrichment.degraded is False
    assert enrichment.description == "Bring pumps."
    assert enrichment.confidence_score == 0.85
    assert "Pumps" in enrichment.reasoning


def test_invalid_answer_falls_back(caplog) -> None:
    client = StubCompletionClient(payload={"description": "Bring pumps.", "confidence_score": 7})
    incident = make_incident()

    with caplog.at_level(logging.WARNING):
        enrichment = MissionEnricher(client).enrich(incident, "Pumps")

    assert enrichment == fallback_enrichment(incident, "Pumps")
    assert "confidence_out_of_range" in caplog.text


def test_client_error_falls_back() -> None:
    client = StubCompletionClient(error=CompletionError("fireworks unavailable: timed out"))

    enrichment = MissionEnricher(client).enrich(make_incident(), "Water")

    assert enrichment.degraded is True
