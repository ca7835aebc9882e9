import pytest

from cultural_guide.settings import (
    DEFAULT_MAX_SESSIONS,
    DEFAULT_QLOO_API_URL,
    DEFAULT_SESSION_TTL_SECONDS,
    OPENAI_KEY_PLACEHOLDER,
    Settings,
    get_settings,
    is_configured,
)


def test_placeholder_and_blank_keys_are_not_configured():
    assert not is_configured(None, OPENAI_KEY_PLACEHOLDER)
    assert not is_configured("", OPENAI_KEY_PLACEHOLDER)
    assert not is_configured("   ", OPENAI_KEY_PLACEHOLDER)
    assert not is_configured(OPENAI_KEY_PLACEHOLDER, OPENAI_KEY_PLACEHOLDER)
    assert is_configured("sk-test", OPENAI_KEY_PLACEHOLDER)


def test_settings_flags():
    assert Settings(openai_api_key="sk-test").openai_configured
    assert not Settings(openai_api_key="your_openai_api_key_here").openai_configured
    assert not Settings(qloo_api_key="your_qloo_api_key_here").qloo_configured


def test_get_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.delenv("QLOO_API_KEY", raising=False)
    monkeypatch.delenv("QLOO_API_URL", raising=False)
    monkeypatch.setenv("CULTURAL_GUIDE_MODEL", "gpt-4o")
    monkeypatch.setenv("CULTURAL_GUIDE_ALLOWED_ORIGINS", "http://localhost:5173, ,http://127.0.0.1:5173")

    settings = get_settings()

    assert settings.openai_api_key == "sk-env"
    assert settings.qloo_api_key is None
    assert settings.qloo_api_url == DEFAULT_QLOO_API_URL
    assert settings.model == "gpt-4o"
    assert settings.allowed_origins == ("http://localhost:5173", "http://127.0.0.1:5173")


def test_allowed_origins_default_to_wildcard(monkeypatch):
    monkeypatch.setenv("CULTURAL_GUIDE_ALLOWED_ORIGINS", " , ")

    assert get_settings().allowed_origins == ("*",)


def test_session_limits_from_environment(monkeypatch):
    monkeypatch.setenv("CULTURAL_GUIDE_SESSION_TTL", "90")
    monkeypatch.setenv("CULTURAL_GUIDE_MAX_SESSIONS", "25")

    settings = get_settings()

    assert settings.session_ttl_seconds == 90
    assert settings.max_sessions == 25


@pytest.mark.parametrize("raw", ["", "soon", "0", "-5"])
def test_bad_session_limits_fall_back_to_defaults(monkeypatch, raw):
    monkeypatch.setenv("CULTURAL_GUIDE_SESSION_TTL", raw)
    monkeypatch.setenv("CULTURAL_GUIDE_MAX_SESSIONS", raw)

    settings = get_settings()

    assert settings.session_ttl_seconds == DEFAULT_SESSION_TTL_SECONDS
    assert settings.max_sessions == DEFAULT_MAX_SESSIONS
