"""
Access control: scope resolution, role gates and ownership guards.
"""

import pytest

from tahfidz.access import (
    OwnershipConfig,
    Principal,
    Scope,
    can_access_student,
    require_ownership_or_bypass,
    require_role,
    resolve_scope,
)
from tahfidz.exceptions import AccessDenied, InfrastructureError
from tahfidz.models.user import UserRole

from conftest import make_user


def principal(user_id: str, role) -> Principal:
    return Principal(user_id=user_id, role=role)


# ============================================================================
# resolve_scope
# ============================================================================

@pytest.mark.parametrize("role", ["admin", "teacher", UserRole.ADMIN, UserRole.TEACHER])
@pytest.mark.parametrize("user_id", ["u1", "someone-else", ""])
async def test_staff_scope_is_unrestricted(repos, role, user_id):
    scope = await resolve_scope(principal(user_id, role), repos.users)
    assert scope == Scope.all()
    assert scope.unrestricted
    assert repos.users.calls == []


async def test_student_scope_is_exactly_self(repos, people):
    scope = await resolve_scope(principal("c1", "student"), repos.users)
    assert scope == Scope.of(["c1"])
    assert scope.student_ids == frozenset({"c1"})
    assert repos.users.calls == []


async def test_parent_scope_is_linked_children(repos, people):
    scope = await resolve_scope(principal("p1", "parent"), repos.users)
    assert scope.student_ids == frozenset({"c1", "c2"})
    assert not scope.unrestricted
    assert repos.users.calls == [("find_many", {"parent_id": "p1"})]


async def test_parent_scope_only_matches_own_parent_id(repos):
    make_user(repos, "c1", "student", parent_id="p1")
    make_user(repos, "c2", "student", parent_id="other")
    scope = await resolve_scope(principal("p1", "parent"), repos.users)
    assert scope == Scope.of(["c1"])


async def test_childless_parent_has_empty_scope(repos, people):
    scope = await resolve_scope(principal("lonely", "parent"), repos.users)
    assert scope == Scope()
    assert scope.is_empty
    for student_id in ("c1", "c2", "s3", "lonely"):
        assert await can_access_student(principal("lonely", "parent"), student_id, repos.users) is False


async def test_unknown_role_fails_closed(repos, people):
    stranger = principal("x1", "janitor")
    assert (await resolve_scope(stranger, repos.users)).is_empty
    assert await can_access_student(stranger, "x1", repos.users) is False
    with pytest.raises(AccessDenied):
        require_role(stranger, list(UserRole))
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(stranger, "x1", OwnershipConfig(), repos.users)


async def test_resolve_scope_is_repeatable(repos, people):
    p1 = principal("p1", "parent")
    first = await resolve_scope(p1, repos.users)
    second = await resolve_scope(p1, repos.users)
    assert first == second


async def test_scope_reflects_children_added_between_calls(repos, people):
    p1 = principal("p1", "parent")
    assert "new-child" not in await resolve_scope(p1, repos.users)
    make_user(repos, "new-child", "student", parent_id="p1")
    assert "new-child" in await resolve_scope(p1, repos.users)


async def test_repository_failure_propagates(repos, people):
    repos.users.error = InfrastructureError("sheet backend timed out")
    with pytest.raises(InfrastructureError):
        await resolve_scope(principal("p1", "parent"), repos.users)
    with pytest.raises(InfrastructureError):
        await can_access_student(principal("p1", "parent"), "c1", repos.users)


# ============================================================================
# can_access_student
# ============================================================================

async def test_student_can_only_access_self(repos):
    u1 = principal("u1", "student")
    assert await can_access_student(u1, "u1", repos.users) is True
    assert await can_access_student(u1, "u2", repos.users) is False


async def test_parent_access_follows_children(repos, people):
    p1 = principal("p1", "parent")
    assert await can_access_student(p1, "c1", repos.users) is True
    assert await can_access_student(p1, "c2", repos.users) is True
    assert await can_access_student(p1, "s3", repos.users) is False


@pytest.mark.parametrize("student_id", ["c1", "s3", "does-not-exist"])
async def test_teacher_can_access_any_student(repos, people, student_id):
    assert await can_access_student(principal("t1", "teacher"), student_id, repos.users) is True


# ============================================================================
# require_role
# ============================================================================

def test_require_role_rejects_parent_for_staff_routes():
    with pytest.raises(AccessDenied):
        require_role(principal("p1", "parent"), {"admin", "teacher"})


def test_require_role_accepts_enum_and_string_roles():
    require_role(principal("t1", UserRole.TEACHER), [UserRole.ADMIN, UserRole.TEACHER])
    require_role(principal("a1", "admin"), {"admin"})


def test_require_role_is_independent_of_scope():
    # Students are in their own scope but still may not use staff actions.
    with pytest.raises(AccessDenied):
        require_role(principal("c1", "student"), {UserRole.ADMIN, UserRole.TEACHER})


# ============================================================================
# require_ownership_or_bypass
# ============================================================================

ADMIN_ONLY = OwnershipConfig(bypass_roles={UserRole.ADMIN})
STAFF = OwnershipConfig(bypass_roles={"admin", "teacher"})


@pytest.mark.parametrize("resource_id", ["c1", "no-such-record", ""])
async def test_bypass_role_skips_ownership(repos, resource_id):
    await require_ownership_or_bypass(principal("a1", "admin"), resource_id, ADMIN_ONLY, repos.users)
    assert repos.users.calls == []


async def test_teacher_without_bypass_is_denied(repos, people):
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(principal("teacher", "teacher"), "c1", ADMIN_ONLY, repos.users)
    await require_ownership_or_bypass(principal("teacher", "teacher"), "c1", STAFF, repos.users)


async def test_student_ownership(repos):
    await require_ownership_or_bypass(principal("c1", "student"), "c1", STAFF, repos.users)
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(principal("c1", "student"), "c2", STAFF, repos.users)


async def test_parent_ownership(repos, people):
    await require_ownership_or_bypass(principal("p1", "parent"), "c2", STAFF, repos.users)
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(principal("p1", "parent"), "s3", STAFF, repos.users)


async def test_parent_cannot_use_own_id_as_student(repos, people):
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(principal("p1", "parent"), "p1", STAFF, repos.users)


async def test_parent_and_student_agree_on_shared_resource(repos, people):
    # Both the child and the matching parent get through; nobody else does.
    await require_ownership_or_bypass(principal("c1", "student"), "c1", ADMIN_ONLY, repos.users)
    await require_ownership_or_bypass(principal("p1", "parent"), "c1", ADMIN_ONLY, repos.users)
    with pytest.raises(AccessDenied):
        await require_ownership_or_bypass(principal("p2", "parent"), "c1", ADMIN_ONLY, repos.users)


async def test_ownership_propagates_repository_failure(repos, people):
    repos.users.error = InfrastructureError()
    with pytest.raises(InfrastructureError):
        await require_ownership_or_bypass(principal("p1", "parent"), "c1", STAFF, repos.users)


# ============================================================================
# Scope helpers
# ============================================================================

def test_restrict_unrestricted_scope_keeps_filters():
    assert Scope.all().restrict({"class_id": "k1"}) == {"class_id": "k1"}


def test_restrict_adds_membership_predicate():
    assert Scope.of(["b", "a"]).restrict({"class_id": "k1"}) == {"class_id": "k1", "student_id": ["a", "b"]}


def test_restrict_keeps_requested_student_only_when_in_scope():
    scope = Scope.of(["a", "b"])
    assert scope.restrict({"student_id": "a"}) == {"student_id": ["a"]}
    assert scope.restrict({"student_id": "z"}) == {"student_id": []}
    assert scope.restrict({"student_id": ["a", "z"]}) == {"student_id": ["a"]}


def test_filter_drops_records_outside_scope():
    records = [{"student_id": "a"}, {"student_id": "b"}, {"student_id": None}]
    assert Scope.of(["a"]).filter(records) == [{"student_id": "a"}]
    assert Scope.all().filter(records) == records


def test_principal_is_immutable():
    p = principal("u1", "student")
    with pytest.raises(Exception):
        p.role = "admin"
