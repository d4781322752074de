from collections.abc import Iterator

import pytest

from chat_agent.app import config
from chat_agent.app.main import build_chat_service
from chat_agent.infrastructure.openai_chat_manager import MAX_RETRY_SLEEP
from chat_agent.infrastructure.redis_manager import RedisManager
from chat_agent.services.message_log import InMemoryMessageStore

REQUIRED_ENV = {
    "COMPLETION_API_KEY": "sk-test",
    "REDIS_URL": "memory://",
    "RECORDS_API_URL": "https://records.test/rest/v1",
}


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in REQUIRED_ENV:
        monkeypatch.delenv(name, raising=False)
    for name in (
        "MAX_ROUNDS",
        "RELAY_CHUNK_SIZE",
        "PARALLEL_TOOL_CALLS",
        "COMPLETION_MODEL",
        "COMPLETION_TIMEOUT",
        "MAX_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    config.reset_settings()
    yield
    config.reset_settings()


def _set_required(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in REQUIRED_ENV.items():
        monkeypatch.setenv(name, value)


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)

    settings = config.get_settings()

    assert settings.completion_model == config.DEFAULT_COMPLETION_MODEL
    assert settings.completion_base_url == config.DEFAULT_COMPLETION_BASE_URL
    assert settings.max_rounds == 6
    assert settings.relay_chunk_size == 30
    assert settings.parallel_tool_calls is True
    assert config.MAX_ROUNDS == 6


def test_overrides_and_upper_case_access(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)
    monkeypatch.setenv("MAX_ROUNDS", "3")
    monkeypatch.setenv("PARALLEL_TOOL_CALLS", "false")

    settings = config.get_settings()

    assert settings.max_rounds == 3
    assert settings.parallel_tool_calls is False
    assert config.REDIS_URL == "memory://"


@pytest.mark.parametrize("missing", sorted(REQUIRED_ENV))
def test_missing_required_value(monkeypatch: pytest.MonkeyPatch, missing: str) -> None:
    _set_required(monkeypatch)
    monkeypatch.delenv(missing)

    with pytest.raises(ValueError, match=missing):
        config.get_settings()


def test_invalid_chunk_size(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)
    monkeypatch.setenv("RELAY_CHUNK_SIZE", "0")

    with pytest.raises(ValueError, match="RELAY_CHUNK_SIZE"):
        config.get_settings()


def test_store_selection(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)
    assert isinstance(build_chat_service().store, InMemoryMessageStore)

    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    config.reset_settings()
    assert isinstance(build_chat_service().store, RedisManager)


def test_search_timeout_matches_completion_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required(monkeypatch)

    settings = config.get_settings()
    assert settings.max_attempts == 1
    assert build_chat_service().search_timeout == 60.0

    monkeypatch.setenv("COMPLETION_TIMEOUT", "20")
    monkeypatch.setenv("MAX_ATTEMPTS", "2")
    config.reset_settings()
    assert build_chat_service().search_timeout == 2 * 20.0 + MAX_RETRY_SLEEP
