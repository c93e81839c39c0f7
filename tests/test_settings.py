import pytest

from gather_stream.infrastructure.config.settings import AppSettings, get_settings, reload_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # Keep a developer's .env out of the way
    monkeypatch.chdir(tmp_path)
    for name in ("ANTHROPIC_API_KEY", "API_KEY", "LOG_LEVEL", "AGENT_MAX_TOOL_ROUNDS",
                 "SEARCH_MAX_RESULTS", "SEARCH_EXTRA_ALLOW_DOMAINS", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)
    yield


def test_defaults():
    settings = AppSettings()
    assert settings.provider.model == "claude-sonnet-4-20250514"
    assert settings.provider.max_tokens == 512
    assert settings.agent.max_tool_rounds == 5
    assert settings.agent.request_timeout_s == 30.0
    assert settings.search.max_results == 3
    assert settings.validate_required_settings() == ["ANTHROPIC_API_KEY"]


def test_environment_overrides_and_clamps(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-live")
    monkeypatch.setenv("AGENT_MAX_TOOL_ROUNDS", "50")
    monkeypatch.setenv("SEARCH_MAX_RESULTS", "0")
    monkeypatch.setenv("SEARCH_EXTRA_ALLOW_DOMAINS", " county.example, ,city.example ")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000,https://app.example")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    settings = AppSettings()
    assert settings.agent.max_tool_rounds == 10
    assert settings.search.max_results == 1
    assert settings.search.allow_domains == ["county.example", "city.example"]
    assert settings.cors_origin_list == ["http://localhost:3000", "https://app.example"]
    assert settings.log_level == "INFO"
    assert settings.validate_required_settings() == []


def test_env_file_is_read(tmp_path):
    (tmp_path / ".env").write_text("ANTHROPIC_API_KEY=sk-from-file\nAGENT_SOURCE_LIMIT=5\n")
    settings = AppSettings()
    assert settings.provider.api_key == "sk-from-file"
    assert settings.agent.source_limit == 5


def test_to_dict_redacts_secrets(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-live")
    monkeypatch.setenv("API_KEY", "inbound")
    data = AppSettings().to_dict()
    assert data["provider"]["api_key"] == "***"
    assert data["api_key"] == "***"


def test_reload_settings_replaces_singleton(monkeypatch):
    first = reload_settings()
    assert get_settings() is first
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-new")
    second = reload_settings()
    assert second is not first
    assert get_settings().provider.api_key == "sk-new"
