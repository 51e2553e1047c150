"""Shared pytest fixtures for Crewline tests."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from crewline_api.core.rbac.types import User
from crewline_api.features.rbac.service import RbacService
from crewline_api.features.rbac.store import InMemoryRbacStore
from crewline_api.main import create_app
from crewline_api.settings import Settings

OWNER_ID = UUID("00000000-0000-4000-8000-000000000001")
OWNER_EMAIL = "owner@crewline.test"


def pytest_collection_modifyitems(config, items) -> None:
    for item in items:
        path_str = str(Path(str(item.fspath)))
        if "/tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)
        elif "/tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _clear_crewline_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("CREWLINE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def store() -> InMemoryRbacStore:
    return InMemoryRbacStore()


@pytest.fixture()
def rbac(store: InMemoryRbacStore) -> RbacService:
    service = RbacService(store)
    service.sync_registry()
    return service


@pytest.fixture()
def make_user(rbac: RbacService) -> Callable[..., User]:
    counter = iter(range(1, 10_000))

    def _make(email: str | None = None, *, display_name: str | None = None) -> User:
        address = email or f"user{next(counter)}@crewline.test"
        return rbac.register_user(User(id=uuid4(), email=address, display_name=display_name))

    return _make


def build_test_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "_env_file": None,
        "rbac_store": "memory",
        "log_level": "WARNING",
        "bootstrap_owner_id": OWNER_ID,
        "bootstrap_owner_email": OWNER_EMAIL,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    return build_test_settings


@pytest.fixture()
def settings() -> Settings:
    return build_test_settings()


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings=settings)


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


HeadersFor = Callable[[UUID], dict[str, str]]


@pytest.fixture()
def headers_for() -> HeadersFor:
    def _headers(user_id: UUID) -> dict[str, str]:
        return {"X-User-Id": str(user_id)}

    return _headers


@pytest.fixture()
def owner_headers(headers_for: HeadersFor) -> dict[str, str]:
    return headers_for(OWNER_ID)
