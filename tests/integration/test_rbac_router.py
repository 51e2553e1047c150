"""HTTP binding of the authorization engine under /api/v1."""

from __future__ import annotations

from uuid import uuid4

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from crewline_api.core.rbac.registry import PERMISSIONS, SYSTEM_ROLES
from crewline_api.main import create_app

pytestmark = pytest.mark.asyncio

API = "/api/v1"


async def _register_user(client: AsyncClient, headers: dict[str, str], email: str) -> str:
    response = await client.post(
        f"{API}/users",
        json={"email": email, "displayName": email.split("@")[0]},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _assign(client: AsyncClient, headers: dict[str, str], role: str, user_id: str) -> dict:
    response = await client.put(
        f"{API}/roles/{role}/assign",
        json={"userId": user_id},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


async def _role_id(client: AsyncClient, headers: dict[str, str], name: str) -> str:
    response = await client.get(f"{API}/roles", headers=headers)
    assert response.status_code == 200
    return next(role["id"] for role in response.json() if role["name"] == name)


# ---------------------------------------------------------------------------
# Identity and guards
# ---------------------------------------------------------------------------


async def test_requests_without_identity_are_rejected(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{API}/roles")

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    payload = response.json()
    assert payload["type"] == "unauthorized"
    assert payload["instance"] == f"{API}/roles"


@pytest.mark.parametrize("header", ["not-a-uuid", str(uuid4())])
async def test_malformed_or_unknown_identity_is_rejected(
    async_client: AsyncClient, header: str
) -> None:
    response = await async_client.get(f"{API}/roles", headers={"X-User-Id": header})

    assert response.status_code == 401


async def test_roles_without_users_view_are_forbidden(
    async_client: AsyncClient, owner_headers: dict[str, str], headers_for
) -> None:
    staff_id = await _register_user(async_client, owner_headers, "staff@crewline.test")
    await _assign(async_client, owner_headers, "Staff", staff_id)
    staff_headers = headers_for(staff_id)

    listing = await async_client.get(f"{API}/roles", headers=staff_headers)
    creation = await async_client.post(
        f"{API}/roles", json={"name": "Sneaky"}, headers=staff_headers
    )

    assert listing.status_code == 403
    assert listing.json()["type"] == "forbidden"
    assert creation.status_code == 403


async def test_auth_disabled_skips_guards(settings_factory) -> None:
    app = create_app(settings=settings_factory(auth_disabled=True))
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            listing = await client.get(f"{API}/roles")
            created = await client.post(f"{API}/roles", json={"name": "Local Dev"})

    assert listing.status_code == 200
    assert created.status_code == 201


# ---------------------------------------------------------------------------
# Catalog and roles
# ---------------------------------------------------------------------------


async def test_catalog_lists_resources_actions_and_keys(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    response = await async_client.get(f"{API}/permissions", headers=owner_headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["resources"][0] == {
        "key": "jobs",
        "label": "Jobs",
        "actions": ["view", "create", "edit", "delete", "manage"],
    }
    assert payload["actions"][-1] == "invite"
    assert [entry["key"] for entry in payload["permissions"]] == [d.key for d in PERMISSIONS]


async def test_list_roles_renders_system_roles_and_wildcard(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    response = await async_client.get(f"{API}/roles", headers=owner_headers)

    assert response.status_code == 200
    roles = response.json()
    assert [role["name"] for role in roles] == [d.name for d in SYSTEM_ROLES]
    owner = roles[1]
    assert owner["isSystemRole"] is True
    assert owner["isActive"] is True
    assert owner["permissions"] == ["*"]
    estimator = next(role for role in roles if role["name"] == "Estimator")
    assert {"resource": "estimates", "actions": ["view", "create", "edit", "delete"]} in (
        estimator["permissions"]
    )


async def test_create_read_and_delete_custom_role(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    created = await async_client.post(
        f"{API}/roles",
        json={
            "name": "Field Estimator",
            "description": "Quotes on site",
            "permissions": [
                {"resource": "estimates", "actions": ["delete", "view"]},
                {"resource": "reports", "actions": []},
            ],
        },
        headers=owner_headers,
    )

    assert created.status_code == 201, created.text
    role = created.json()
    assert role["isSystemRole"] is False
    assert role["permissions"] == [{"resource": "estimates", "actions": ["view", "delete"]}]

    by_id = await async_client.get(f"{API}/roles/{role['id']}", headers=owner_headers)
    assert by_id.status_code == 200
    assert by_id.json()["name"] == "Field Estimator"

    deleted = await async_client.delete(f"{API}/roles/{role['id']}", headers=owner_headers)
    assert deleted.status_code == 204

    missing = await async_client.get(f"{API}/roles/{role['id']}", headers=owner_headers)
    assert missing.status_code == 404
    assert missing.json()["type"] == "role_not_found"


async def test_duplicate_role_names_conflict(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    first = await async_client.post(
        f"{API}/roles", json={"name": "Dispatcher"}, headers=owner_headers
    )
    assert first.status_code == 201

    for name in ("Staff", "Dispatcher"):
        response = await async_client.post(
            f"{API}/roles", json={"name": name}, headers=owner_headers
        )
        assert response.status_code == 409
        assert response.json()["type"] == "duplicate_role_name"


@pytest.mark.parametrize(
    ("body", "error_type"),
    [
        ({"name": "Bad", "permissions": [{"resource": "jobs", "actions": ["fly"]}]}, "invalid_permission"),
        ({"name": "Bad", "permissions": [{"resource": "*", "actions": ["*"]}]}, "invalid_permission"),
        ({"name": "Bad", "permissions": [{"resource": "moon", "actions": ["view"]}]}, "invalid_permission"),
        ({"name": "   "}, "invalid_role_name"),
        ({"name": 5}, "validation_error"),
        ({}, "validation_error"),
    ],
)
async def test_create_role_validation(
    async_client: AsyncClient,
    owner_headers: dict[str, str],
    body: dict,
    error_type: str,
) -> None:
    response = await async_client.post(f"{API}/roles", json=body, headers=owner_headers)

    assert response.status_code == 422
    assert response.json()["type"] == error_type


async def test_system_roles_are_immutable_over_http(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    staff_id = await _role_id(async_client, owner_headers, "Staff")

    patched = await async_client.patch(
        f"{API}/roles/{staff_id}", json={"description": "mine now"}, headers=owner_headers
    )
    toggled = await async_client.post(
        f"{API}/roles/{staff_id}/permissions/toggle",
        json={"resource": "jobs", "action": "delete"},
        headers=owner_headers,
    )
    deleted = await async_client.delete(f"{API}/roles/{staff_id}", headers=owner_headers)

    for response in (patched, toggled, deleted):
        assert response.status_code == 403
        assert response.json()["type"] == "immutable_role"


async def test_patch_and_toggle_custom_role(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    created = await async_client.post(
        f"{API}/roles",
        json={"name": "Dispatcher", "permissions": [{"resource": "jobs", "actions": ["view"]}]},
        headers=owner_headers,
    )
    role_id = created.json()["id"]

    patched = await async_client.patch(
        f"{API}/roles/{role_id}",
        json={
            "name": "Lead Dispatcher",
            "isActive": True,
            "permissions": [{"resource": "schedules", "actions": ["view", "edit"]}],
        },
        headers=owner_headers,
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["name"] == "Lead Dispatcher"
    assert patched.json()["permissions"] == [
        {"resource": "jobs", "actions": ["view"]},
        {"resource": "schedules", "actions": ["view", "edit"]},
    ]

    toggled = await async_client.post(
        f"{API}/roles/{role_id}/permissions/toggle",
        json={"resource": "jobs", "action": "view"},
        headers=owner_headers,
    )
    assert toggled.status_code == 200
    assert toggled.json()["permissions"] == [
        {"resource": "schedules", "actions": ["view", "edit"]},
    ]

    invalid = await async_client.post(
        f"{API}/roles/{role_id}/permissions/toggle",
        json={"resource": "inbox", "action": "delete"},
        headers=owner_headers,
    )
    assert invalid.status_code == 422

    missing = await async_client.patch(
        f"{API}/roles/{uuid4()}", json={"name": "Ghost"}, headers=owner_headers
    )
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def test_assign_moves_user_between_roles(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    user_id = await _register_user(async_client, owner_headers, "crew@crewline.test")

    await _assign(async_client, owner_headers, "Staff", user_id)
    membership = await _assign(async_client, owner_headers, "Accountant", user_id)

    assert membership["userId"] == user_id
    assert membership["roleName"] == "Accountant"
    staff = await async_client.get(f"{API}/roles/Staff/members", headers=owner_headers)
    accountant = await async_client.get(f"{API}/roles/Accountant/members", headers=owner_headers)
    assert staff.json()["members"] == []
    assert [member["id"] for member in accountant.json()["members"]] == [user_id]
    assert accountant.json()["roleName"] == "Accountant"


async def test_assign_errors(async_client: AsyncClient, owner_headers: dict[str, str]) -> None:
    user_id = await _register_user(async_client, owner_headers, "crew@crewline.test")

    unknown_role = await async_client.put(
        f"{API}/roles/Nobody/assign", json={"userId": user_id}, headers=owner_headers
    )
    unknown_user = await async_client.put(
        f"{API}/roles/Staff/assign", json={"userId": str(uuid4())}, headers=owner_headers
    )

    assert unknown_role.status_code == 404
    assert unknown_role.json()["type"] == "role_not_found"
    assert unknown_user.status_code == 404
    assert unknown_user.json()["type"] == "user_not_found"


async def test_unassign_flow(async_client: AsyncClient, owner_headers: dict[str, str]) -> None:
    user_id = await _register_user(async_client, owner_headers, "crew@crewline.test")
    await _assign(async_client, owner_headers, "Staff", user_id)

    wrong_role = await async_client.put(
        f"{API}/roles/Client/unassign", json={"userId": user_id}, headers=owner_headers
    )
    assert wrong_role.status_code == 409
    assert wrong_role.json()["type"] == "not_a_member"

    removed = await async_client.put(
        f"{API}/roles/Staff/unassign", json={"user_id": user_id}, headers=owner_headers
    )
    assert removed.status_code == 200
    assert removed.json()["roleId"] is None

    again = await async_client.put(
        f"{API}/roles/Staff/unassign", json={"userId": user_id}, headers=owner_headers
    )
    assert again.status_code == 409


async def test_delete_role_with_members_conflicts(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    user_id = await _register_user(async_client, owner_headers, "crew@crewline.test")
    created = await async_client.post(
        f"{API}/roles", json={"name": "Dispatcher"}, headers=owner_headers
    )
    role_id = created.json()["id"]
    await _assign(async_client, owner_headers, role_id, user_id)

    response = await async_client.delete(f"{API}/roles/{role_id}", headers=owner_headers)

    assert response.status_code == 409
    assert response.json()["type"] == "role_has_members"


# ---------------------------------------------------------------------------
# Users and decisions
# ---------------------------------------------------------------------------


async def test_register_user_rejects_duplicate_email(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    await _register_user(async_client, owner_headers, "crew@crewline.test")

    response = await async_client.post(
        f"{API}/users", json={"email": "CREW@crewline.test"}, headers=owner_headers
    )

    assert response.status_code == 409
    assert response.json()["type"] == "duplicate_user_email"


async def test_check_permission_decisions(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    user_id = await _register_user(async_client, owner_headers, "quotes@crewline.test")
    await _assign(async_client, owner_headers, "Estimator", user_id)

    allowed = await async_client.post(
        f"{API}/permissions/check",
        json={"userId": user_id, "resource": "estimates", "action": "delete"},
        headers=owner_headers,
    )
    denied = await async_client.post(
        f"{API}/permissions/check",
        json={"userId": user_id, "resource": "invoices", "action": "view"},
        headers=owner_headers,
    )

    assert allowed.json() == {"allowed": True, "decision": "allow"}
    assert denied.json() == {"allowed": False, "decision": "deny"}


@pytest.mark.parametrize(
    "body",
    [
        None,
        {},
        {"userId": 42, "resource": ["jobs"], "action": None},
        {"userId": "not-a-uuid", "resource": "jobs", "action": "view"},
        {"userId": "00000000-0000-4000-8000-000000000001", "resource": 1, "action": 2},
        {"unexpected": True},
    ],
)
async def test_check_permission_never_fails(
    async_client: AsyncClient, owner_headers: dict[str, str], body: dict | None
) -> None:
    response = await async_client.post(
        f"{API}/permissions/check", json=body, headers=owner_headers
    )

    assert response.status_code == 200
    assert response.json() == {"allowed": False, "decision": "deny"}


async def test_owner_wildcard_allows_anything(
    async_client: AsyncClient, owner_headers: dict[str, str]
) -> None:
    response = await async_client.post(
        f"{API}/permissions/check",
        json={
            "userId": owner_headers["X-User-Id"],
            "resource": "anything",
            "action": "anything",
        },
        headers=owner_headers,
    )

    assert response.json()["allowed"] is True


async def test_user_permissions_for_self_and_others(
    async_client: AsyncClient, owner_headers: dict[str, str], headers_for
) -> None:
    staff_id = await _register_user(async_client, owner_headers, "staff@crewline.test")
    await _assign(async_client, owner_headers, "Staff", staff_id)
    staff_headers = headers_for(staff_id)

    own = await async_client.get(f"{API}/users/{staff_id}/permissions", headers=staff_headers)
    others = await async_client.get(
        f"{API}/users/{owner_headers['X-User-Id']}/permissions", headers=staff_headers
    )
    by_owner = await async_client.get(
        f"{API}/users/{staff_id}/permissions", headers=owner_headers
    )

    assert own.status_code == 200
    assert own.json() == {
        "userId": staff_id,
        "roleName": "Staff",
        "permissions": ["inbox.view", "jobs.edit", "jobs.view", "schedules.view", "work.view"],
    }
    assert others.status_code == 403
    assert by_owner.json() == own.json()


# ---------------------------------------------------------------------------
# Ambient behaviour
# ---------------------------------------------------------------------------


async def test_request_id_is_echoed_in_headers_and_problems(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{API}/roles", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
    assert response.json()["requestId"] == "req-42"


async def test_request_id_is_generated_when_absent(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")

    assert response.headers["X-Request-ID"]


async def test_health_and_readiness(async_client: AsyncClient) -> None:
    health = await async_client.get("/health")
    ready = await async_client.get("/ready")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["store"] == "memory"
    assert ready.status_code == 200


async def test_database_store_end_to_end(settings_factory, tmp_path) -> None:
    database_url = f"sqlite:///{tmp_path / 'crewline.sqlite'}"
    settings = settings_factory(rbac_store="database", database_url=database_url)

    for _ in range(2):
        app = create_app(settings=settings)
        async with LifespanManager(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://testserver") as client:
                headers = {"X-User-Id": str(settings.bootstrap_owner_id)}
                roles = await client.get(f"{API}/roles", headers=headers)
                ready = await client.get("/ready")

        assert roles.status_code == 200
        assert [role["name"] for role in roles.json()] == [d.name for d in SYSTEM_ROLES]
        assert ready.json()["store"] == "database"
