"""Crewline settings (pydantic-settings, CREWLINE_* environment variables)."""

from __future__ import annotations

import json
from collections.abc import Callable
from functools import lru_cache
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})

# ---- Defaults ---------------------------------------------------------------

DEFAULT_DATABASE_URL = "sqlite:///./data/crewline.sqlite"
DEFAULT_CORS_ORIGINS: list[str] = []


def crewline_settings_config(
    *,
    enable_decoding: bool = True,
    populate_by_name: bool = False,
) -> SettingsConfigDict:
    """Return the standard Crewline ``BaseSettings`` config dict."""

    return SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CREWLINE_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        enable_decoding=enable_decoding,
        populate_by_name=populate_by_name,
        str_strip_whitespace=True,
    )


def create_settings_accessors[T](
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "CREWLINE_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """FastAPI settings loaded from CREWLINE_* environment variables."""

    model_config = crewline_settings_config(enable_decoding=False, populate_by_name=True)

    # Core
    app_name: str = "Crewline API"
    app_version: str = "0.1.0"
    log_format: str = "console"
    log_level: str = "INFO"
    request_log_level: str | None = None
    access_log_enabled: bool = True

    # Server
    api_host: str = "127.0.0.1"
    api_port: int = Field(8000, ge=1, le=65535)
    server_cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    # Storage
    rbac_store: Literal["memory", "database"] = "memory"
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_log_level: str | None = None

    # Roles and membership
    rbac_unassign_fallback_role: str | None = None
    auth_disabled: bool = False
    bootstrap_owner_id: UUID | None = None
    bootstrap_owner_email: str | None = None
    bootstrap_owner_name: str | None = "Company Owner"

    # ---- Validators ----

    @field_validator("server_cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: object) -> object:
        if value is None:
            return value
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            if raw.startswith("["):
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, list):
                    return parsed
            return [item.strip() for item in raw.split(",") if item.strip()]
        if isinstance(value, tuple):
            return list(value)
        return value

    @field_validator("rbac_store", mode="before")
    @classmethod
    def _normalize_rbac_store(cls, value: object) -> object:
        if value is None:
            return "memory"
        return str(value).strip().lower()

    @field_validator("rbac_unassign_fallback_role", mode="before")
    @classmethod
    def _blank_fallback_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _finalize(self) -> Settings:
        self.log_format = normalize_log_format(self.log_format)

        normalized_log_level = normalize_log_level(self.log_level, env_var="CREWLINE_LOG_LEVEL")
        if normalized_log_level is None:
            raise ValueError("CREWLINE_LOG_LEVEL must not be empty.")
        self.log_level = normalized_log_level

        self.request_log_level = normalize_log_level(
            self.request_log_level,
            env_var="CREWLINE_REQUEST_LOG_LEVEL",
        )
        self.database_log_level = normalize_log_level(
            self.database_log_level,
            env_var="CREWLINE_DATABASE_LOG_LEVEL",
        )

        if self.bootstrap_owner_id is not None and not self.bootstrap_owner_email:
            raise ValueError(
                "CREWLINE_BOOTSTRAP_OWNER_EMAIL is required when CREWLINE_BOOTSTRAP_OWNER_ID is set."
            )
        return self

    # ---- Convenience ----

    @property
    def effective_request_log_level(self) -> str:
        return self.request_log_level or self.log_level

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


get_settings, reload_settings = create_settings_accessors(Settings)


__all__ = [
    "ALLOWED_LOG_FORMATS",
    "ALLOWED_LOG_LEVELS",
    "DEFAULT_CORS_ORIGINS",
    "DEFAULT_DATABASE_URL",
    "Settings",
    "create_settings_accessors",
    "crewline_settings_config",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
    "reload_settings",
]
