from __future__ import annotations

from uuid import uuid4

import pytest

from crewline_api.core.rbac.errors import (
    DuplicateUserEmail,
    NotAMember,
    RoleNotFound,
    UserNotFound,
)
from crewline_api.core.rbac.types import User
from crewline_api.features.rbac.roles import RolePatch
from crewline_api.features.rbac.service import RbacService
from crewline_api.features.rbac.store import InMemoryRbacStore


def test_assign_overwrites_previous_role(rbac: RbacService, make_user) -> None:
    user = make_user()

    rbac.assign_member("Staff", user.id)
    membership = rbac.assign_member("Accountant", user.id)

    assert membership.role is not None and membership.role.name == "Accountant"
    assert rbac.role_of(user.id).name == "Accountant"
    assert user.id in rbac.list_member_ids("Accountant")
    assert user.id not in rbac.list_member_ids("Staff")


def test_assign_accepts_id_strings(rbac: RbacService, make_user) -> None:
    user = make_user()
    staff = rbac.get_role("Staff")

    membership = rbac.assign_member(str(staff.id), str(user.id))

    assert membership.user_id == user.id
    assert membership.role == staff


def test_assign_unknown_role(rbac: RbacService, make_user) -> None:
    user = make_user()

    with pytest.raises(RoleNotFound):
        rbac.assign_member("Nobody", user.id)
    assert rbac.role_of(user.id) is None


def test_assign_inactive_role(rbac: RbacService, make_user) -> None:
    user = make_user()
    role = rbac.create_role(name="Seasonal", is_active=False)

    with pytest.raises(RoleNotFound):
        rbac.assign_member(role.id, user.id)


@pytest.mark.parametrize("user_ref", [uuid4(), "not-a-uuid", None, 12])
def test_assign_unknown_user(rbac: RbacService, user_ref: object) -> None:
    with pytest.raises(UserNotFound):
        rbac.assign_member("Staff", user_ref)


def test_unassign_leaves_user_roleless(rbac: RbacService, make_user) -> None:
    user = make_user()
    rbac.assign_member("Staff", user.id)

    membership = rbac.unassign_member("Staff", user.id)

    assert membership.role is None
    assert rbac.role_of(user.id) is None
    assert rbac.list_member_ids("Staff") == set()


def test_unassign_requires_current_membership(rbac: RbacService, make_user) -> None:
    user = make_user()
    rbac.assign_member("Staff", user.id)

    with pytest.raises(NotAMember):
        rbac.unassign_member("Accountant", user.id)
    with pytest.raises(NotAMember):
        rbac.unassign_member("Nobody", user.id)
    with pytest.raises(NotAMember):
        rbac.unassign_member("Staff", uuid4())
    with pytest.raises(NotAMember):
        rbac.unassign_member("Staff", "garbage")

    assert rbac.role_of(user.id).name == "Staff"


def test_unassign_twice_is_not_a_member(rbac: RbacService, make_user) -> None:
    user = make_user()
    rbac.assign_member("Staff", user.id)
    rbac.unassign_member("Staff", user.id)

    with pytest.raises(NotAMember):
        rbac.unassign_member("Staff", user.id)


def test_unassign_moves_user_to_fallback_role() -> None:
    service = RbacService(InMemoryRbacStore(), unassign_fallback_role="Client")
    service.sync_registry()
    user = service.register_user(User(id=uuid4(), email="crew@crewline.test"))
    service.assign_member("Staff", user.id)

    membership = service.unassign_member("Staff", user.id)

    assert membership.role is not None and membership.role.name == "Client"
    assert service.role_of(user.id).name == "Client"


def test_unassign_from_fallback_role_clears_membership() -> None:
    service = RbacService(InMemoryRbacStore(), unassign_fallback_role="Client")
    service.sync_registry()
    user = service.register_user(User(id=uuid4(), email="client@crewline.test"))
    service.assign_member("Client", user.id)

    membership = service.unassign_member("Client", user.id)

    assert membership.role is None


def test_unassign_ignores_inactive_or_missing_fallback() -> None:
    service = RbacService(InMemoryRbacStore(), unassign_fallback_role="Parked")
    service.sync_registry()
    user = service.register_user(User(id=uuid4(), email="crew@crewline.test"))

    service.assign_member("Staff", user.id)
    assert service.unassign_member("Staff", user.id).role is None

    parked = service.create_role(name="Parked", permissions=[("inbox", ["view"])])
    service.update_role(parked.id, RolePatch(is_active=False))
    service.assign_member("Staff", user.id)
    assert service.unassign_member("Staff", user.id).role is None


def test_list_members_orders_users_by_email(rbac: RbacService, make_user) -> None:
    zed = make_user("zed@crewline.test")
    amy = make_user("amy@crewline.test")
    rbac.assign_member("Staff", zed.id)
    rbac.assign_member("Staff", amy.id)

    members = rbac.list_members("Staff")

    assert [user.email for user in members] == ["amy@crewline.test", "zed@crewline.test"]


def test_members_of_unknown_role(rbac: RbacService) -> None:
    with pytest.raises(RoleNotFound):
        rbac.list_members("Nobody")


def test_renaming_a_role_keeps_its_members(rbac: RbacService, make_user) -> None:
    role = rbac.create_role(name="Dispatcher", permissions=[("jobs", ["view"])])
    user = make_user()
    rbac.assign_member(role.name, user.id)

    rbac.update_role(role.id, RolePatch(name="Lead Dispatcher"))

    assert rbac.role_of(user.id).name == "Lead Dispatcher"
    assert rbac.list_member_ids("Lead Dispatcher") == {user.id}


def test_register_user_is_idempotent(rbac: RbacService) -> None:
    user = User(id=uuid4(), email="first@crewline.test")

    stored = rbac.register_user(user)
    again = rbac.register_user(User(id=user.id, email="second@crewline.test"))

    assert stored == user
    assert again == user
    assert rbac.get_user(user.id) == user


def test_register_user_rejects_taken_email_ignoring_case(rbac: RbacService) -> None:
    first = rbac.register_user(User(id=uuid4(), email="crew@crewline.test"))

    with pytest.raises(DuplicateUserEmail):
        rbac.register_user(User(id=uuid4(), email="  CREW@crewline.test "))

    assert rbac.register_user(User(id=first.id, email="crew@crewline.test")) == first
    assert rbac.store.get_user_by_email("Crew@Crewline.test") == first
