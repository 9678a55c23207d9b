import dataclasses
import os

import pytest

from conftest import FakeDatabase
from disaster_hub.bootstrap import build_completion_client, build_runtime, load_environment
from disaster_hub.config import Settings


@pytest.fixture
def settings(monkeypatch) -> Settings:
    for name in ("LLM_PROVIDER", "FIREWORKS_API_KEY", "OPENROUTER_API_KEY", "DEEPSEEK_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return Settings.from_env()


def test_load_environment_sets_missing_vars(tmp_path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("A=1\nB=hello\n", encoding="utf-8")
    monkeypatch.delenv("A", raising=False)
    monkeypatch.delenv("B", raising=False)

    load_environment(str(env_file))

    assert os.environ["A"] == "1"
    assert os.environ["B"] == "hello"


def test_load_environment_does_not_override_existing(tmp_path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("A=2\n", encoding="utf-8")
    monkeypatch.setenv("A", "keep")

    load_environment(str(env_file))

    assert os.environ["A"] == "keep"


def test_auto_prefers_fireworks(settings) -> None:
    settings = dataclasses.replace(settings, fireworks_api_key="fw", openrouter_api_key="or")

    client = build_completion_client(settings)

    assert client.provider_name == "fireworks"
    assert client.is_available() is True


def test_auto_falls_back_to_openrouter(settings) -> None:
    settings = dataclasses.replace(settings, openrouter_api_key="or")

    assert build_completion_client(settings).provider_name == "openrouter"


def test_auto_without_keys_is_unavailable_deepseek(settings) -> None:
    client = build_completion_client(settings)

    assert client.provider_name == "deepseek"
    assert client.is_available() is False


def test_unknown_provider_uses_deepseek(settings) -> None:
    settings = dataclasses.replace(settings, llm_provider="mystery", deepseek_api_key="ds")

    assert build_completion_client(settings).provider_name == "deepseek"


def test_build_runtime_wires_shared_components(settings) -> None:
    database = FakeDatabase()

    runtime = build_runtime(settings, database=database)

    assert runtime.database is database
    assert ("incident_id", "name") in database["mission"].unique_keys
    assert runtime.sweeper.is_started is False
    assert runtime.dispatch_trigger.load_previous("missing") is None
