from buildagent.config import get_settings


ENV_VARS = (
    "UPSTREAM_BASE_URL",
    "UPSTREAM_PATH",
    "UPSTREAM_API_KEY",
    "UPSTREAM_MODEL",
    "REQUEST_TIMEOUT",
    "UPSTREAM_MAX_RETRIES",
    "UPSTREAM_RETRY_BACKOFF",
    "TEMPERATURE",
    "LOG_LEVEL",
)


def test_settings_defaults(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.upstream_base_url == "http://localhost:8001"
    assert settings.upstream_path == "/chat/completions"
    assert settings.upstream_api_key is None
    assert settings.upstream_model == "meta-llama-3.1-8b-instruct"
    assert settings.request_timeout == 60.0
    assert settings.upstream_max_retries == 2
    assert settings.upstream_retry_backoff == 0.5
    assert settings.temperature == 0.7
    assert settings.log_level == "INFO"


def test_settings_overrides(monkeypatch):
    monkeypatch.setenv("UPSTREAM_BASE_URL", "http://example.com")
    monkeypatch.setenv("UPSTREAM_PATH", "/v1/chat")
    monkeypatch.setenv("UPSTREAM_API_KEY", "secret")
    monkeypatch.setenv("UPSTREAM_MODEL", "gemini-2.5-flash")
    monkeypatch.setenv("REQUEST_TIMEOUT", "12")
    monkeypatch.setenv("UPSTREAM_MAX_RETRIES", "5")
    monkeypatch.setenv("UPSTREAM_RETRY_BACKOFF", "0")
    monkeypatch.setenv("TEMPERATURE", "0.2")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.upstream_base_url == "http://example.com"
    assert settings.upstream_path == "/v1/chat"
    assert settings.upstream_api_key == "secret"
    assert settings.upstream_model == "gemini-2.5-flash"
    assert settings.request_timeout == 12.0
    assert settings.upstream_max_retries == 5
    assert settings.upstream_retry_backoff == 0.0
    assert settings.temperature == 0.2
    assert settings.log_level == "DEBUG"


def test_negative_retries_clamped(monkeypatch):
    monkeypatch.setenv("UPSTREAM_MAX_RETRIES", "-3")

    assert get_settings().upstream_max_retries == 0
