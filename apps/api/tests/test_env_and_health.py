import pytest

from config import Settings, get_principal_config, settings, validate_security_settings
from routers import env


def _supplied_settings(monkeypatch, **values):
    """Settings built only from the given values, ignoring the process environment and .env."""
    for key in (*env.OPTIONAL_KEYS, *env.REQUIRED_KEYS):
        monkeypatch.delenv(key, raising=False)
    supplied = Settings(_env_file=None, **values)
    monkeypatch.setattr(env, "settings", supplied)
    return supplied


@pytest.mark.asyncio
async def test_test_env_reports_presence_flags_only(client, monkeypatch):
    _supplied_settings(monkeypatch, PEXELS_API_KEY="px-secret-value", CLERK_SECRET_KEY="")
    response = await client.get("/test-env")
    assert response.status_code == 200
    payload = response.json()

    assert all(isinstance(value, bool) for value in payload.values())
    assert payload["PEXELS_API_KEY"] is True
    assert payload["CLERK_SECRET_KEY"] is False
    assert payload["hasAllRequired"] is False
    assert "px-secret-value" not in response.text


@pytest.mark.asyncio
async def test_test_env_ignores_built_in_defaults(client, monkeypatch):
    supplied = _supplied_settings(monkeypatch)
    assert supplied.DATABASE_URL

    payload = (await client.get("/test-env")).json()
    assert payload["DATABASE_URL"] is False
    assert payload["APP_URL"] is False
    assert payload["REDIS_URL"] is False
    assert payload["hasAllRequired"] is False


@pytest.mark.asyncio
async def test_test_env_has_all_required_when_configured(client, monkeypatch):
    values = {key: f"{key.lower()}-value" for key in env.REQUIRED_KEYS}
    values["DATABASE_URL"] = "postgresql+asyncpg://app:secret@db:5432/easyland"
    values["APP_URL"] = "https://easyland.site"
    _supplied_settings(monkeypatch, **values)

    payload = (await client.get("/test-env")).json()
    assert payload["DATABASE_URL"] is True
    assert payload["hasAllRequired"] is True
    assert "secret@db" not in str(payload)


@pytest.mark.asyncio
async def test_liveness_probe(client):
    response = await client.get("/health/live")
    assert response.json() == {"alive": True}


def test_default_principal_requires_flag_and_id(monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_DEFAULT_PRINCIPAL", True)
    monkeypatch.setattr(settings, "DEFAULT_PRINCIPAL_ID", "  ")
    assert get_principal_config().allow_default_principal is False

    monkeypatch.setattr(settings, "DEFAULT_PRINCIPAL_ID", "dev-user")
    config = get_principal_config()
    assert config.allow_default_principal is True
    assert config.default_principal_id == "dev-user"


def test_security_settings_fail_fast_outside_development(monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    monkeypatch.setattr(settings, "JWT_SECRET", "change_me_in_production")
    with pytest.raises(ValueError):
        validate_security_settings()

    monkeypatch.setattr(settings, "JWT_SECRET", "x" * 32)
    monkeypatch.setattr(settings, "ALLOW_DEFAULT_PRINCIPAL", True)
    with pytest.raises(ValueError):
        validate_security_settings()

    monkeypatch.setattr(settings, "ALLOW_DEFAULT_PRINCIPAL", False)
    validate_security_settings()
