import pytest
from pydantic import ValidationError

from designreview.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    settings = Settings(_env_file=None)

    assert settings.rate_limit_ai_per_minute == 5
    assert settings.rate_limit_ai_per_day == 100
    assert settings.rate_limit_api_per_15min == 100
    assert settings.rate_limit_auth_per_15min == 5
    assert settings.rate_limit_cleanup_interval_seconds == 300.0
    assert settings.ai_max_concurrent == 2
    assert settings.ai_min_interval_ms == 2000
    assert settings.gemini_api_key == ""
    assert settings.log_level == "INFO"
    assert settings.auth_user_header == ""


def test_legacy_gemini_env_names(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_GEMINI_PER_MINUTE", "9")
    monkeypatch.setenv("RATE_LIMIT_GEMINI_PER_DAY", "90")

    settings = Settings(_env_file=None)

    assert settings.rate_limit_ai_per_minute == 9
    assert settings.rate_limit_ai_per_day == 90


def test_primary_env_name_wins(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_AI_PER_MINUTE", "3")
    monkeypatch.setenv("RATE_LIMIT_GEMINI_PER_MINUTE", "9")

    assert Settings(_env_file=None).rate_limit_ai_per_minute == 3


@pytest.mark.parametrize(
    ("env", "value"),
    [
        ("RATE_LIMIT_AI_PER_MINUTE", "0"),
        ("RATE_LIMIT_API_PER_15MIN", "-1"),
        ("AI_MAX_CONCURRENT", "0"),
        ("AI_MIN_INTERVAL_MS", "-5"),
        ("RATE_LIMIT_CLEANUP_INTERVAL_SECONDS", "0"),
        ("LOG_FORMAT", "xml"),
    ],
)
def test_rejects_invalid_values(monkeypatch, env: str, value: str) -> None:
    monkeypatch.setenv(env, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_cors_origins_from_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", '["http://localhost:5173"]')

    assert Settings(_env_file=None).cors_origins == ["http://localhost:5173"]


def test_rate_limit_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")

    assert Settings(_env_file=None).rate_limit_enabled is False
