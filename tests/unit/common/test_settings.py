from __future__ import annotations

from uuid import UUID

import pytest
from pydantic import ValidationError

from crewline_api.settings import Settings, get_settings, reload_settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.rbac_store == "memory"
    assert settings.log_level == "INFO"
    assert settings.log_format == "console"
    assert settings.effective_request_log_level == "INFO"
    assert settings.api_port == 8000
    assert settings.server_cors_origins == []
    assert settings.rbac_unassign_fallback_role is None
    assert settings.auth_disabled is False
    assert settings.is_sqlite


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    owner = "5a6f8a5e-9b43-4e9a-8a51-7d9ff0d1f7a1"
    monkeypatch.setenv("CREWLINE_RBAC_STORE", "DATABASE")
    monkeypatch.setenv("CREWLINE_LOG_LEVEL", "debug")
    monkeypatch.setenv("CREWLINE_REQUEST_LOG_LEVEL", "warning")
    monkeypatch.setenv("CREWLINE_SERVER_CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("CREWLINE_RBAC_UNASSIGN_FALLBACK_ROLE", "Client")
    monkeypatch.setenv("CREWLINE_AUTH_DISABLED", "true")
    monkeypatch.setenv("CREWLINE_BOOTSTRAP_OWNER_ID", owner)
    monkeypatch.setenv("CREWLINE_BOOTSTRAP_OWNER_EMAIL", "owner@crewline.test")

    settings = Settings(_env_file=None)

    assert settings.rbac_store == "database"
    assert settings.log_level == "DEBUG"
    assert settings.effective_request_log_level == "WARNING"
    assert settings.server_cors_origins == ["http://a.test", "http://b.test"]
    assert settings.rbac_unassign_fallback_role == "Client"
    assert settings.auth_disabled is True
    assert settings.bootstrap_owner_id == UUID(owner)


def test_cors_origins_accept_json_arrays(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CREWLINE_SERVER_CORS_ORIGINS", '["http://a.test"]')

    assert Settings(_env_file=None).server_cors_origins == ["http://a.test"]


def test_blank_fallback_role_is_none() -> None:
    assert Settings(_env_file=None, rbac_unassign_fallback_role="  ").rbac_unassign_fallback_role is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"database_log_level": "chatty"},
        {"rbac_store": "redis"},
        {"api_port": 0},
        {"bootstrap_owner_id": "5a6f8a5e-9b43-4e9a-8a51-7d9ff0d1f7a1"},
    ],
)
def test_invalid_values_fail_at_load(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_accessors_cache_until_reload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CREWLINE_APP_NAME", "First")
    first = reload_settings()
    monkeypatch.setenv("CREWLINE_APP_NAME", "Second")

    assert get_settings() is first
    assert reload_settings().app_name == "Second"
    monkeypatch.delenv("CREWLINE_APP_NAME")
    assert reload_settings().app_name == "Crewline API"
