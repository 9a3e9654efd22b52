"""Access control: role gates, ownership checks and student scope resolution.

Every data endpoint asks this module two questions: may this principal perform
the action at all (``require_role``), and which students' data may it see
(``resolve_scope`` / ``can_access_student`` / ``require_ownership_or_bypass``).
The two checks are independent and an endpoint may need both.

Scope is recomputed from the repository on every call. A parent's children
can be linked or unlinked at any time, so nothing here is cached.

Principals reaching this module are assumed active; the authenticator rejects
deactivated accounts before any of these functions run.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tahfidz.exceptions import AccessDenied
from tahfidz.models.user import UserRole
from tahfidz.repository import Filters, Record, Repository

logger = logging.getLogger(__name__)


def role_values(roles: Iterable[str]) -> frozenset[str]:
    """Plain role strings; ``UserRole`` members hash differently from their values."""
    return frozenset(r.value if isinstance(r, UserRole) else str(r) for r in roles)


# Roles whose data visibility is unrestricted.
UNRESTRICTED_ROLES = role_values([UserRole.ADMIN, UserRole.TEACHER])


class Principal(BaseModel):
    """The authenticated caller of a single request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    # Plain string so that values outside ``UserRole`` can reach the checks
    # below and be denied there.
    role: str
    is_active: bool = True

    @field_validator("role", mode="before")
    @classmethod
    def _plain_role(cls, value):
        return value.value if isinstance(value, UserRole) else value


class Scope(BaseModel):
    """Students a principal may see: everyone, or an explicit id set."""

    model_config = ConfigDict(frozen=True)

    unrestricted: bool = False
    student_ids: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def all(cls) -> Scope:
        return cls(unrestricted=True)

    @classmethod
    def of(cls, student_ids: Iterable[str]) -> Scope:
        return cls(student_ids=frozenset(student_ids))

    def __contains__(self, student_id: object) -> bool:
        return self.unrestricted or student_id in self.student_ids

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.student_ids

    def restrict(self, filters: Filters | None = None, field: str = "student_id") -> Filters:
        """Intersect a repository predicate with this scope.

        An explicit ``field`` value already in ``filters`` is kept only if it
        lies inside the scope; otherwise the predicate matches nothing.
        """
        filters = dict(filters or {})
        if self.unrestricted:
            return filters
        requested = filters.get(field)
        if requested is None:
            filters[field] = sorted(self.student_ids)
        elif isinstance(requested, (list, tuple, set, frozenset)):
            filters[field] = sorted(set(requested) & self.student_ids)
        else:
            filters[field] = [requested] if requested in self.student_ids else []
        return filters

    def filter(self, records: Iterable[Record], field: str = "student_id") -> list[Record]:
        return [r for r in records if r.get(field) in self]


class OwnershipConfig(BaseModel):
    """Per-route settings for ``require_ownership_or_bypass``."""

    model_config = ConfigDict(frozen=True)

    bypass_roles: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("bypass_roles", mode="before")
    @classmethod
    def _plain_roles(cls, value):
        return role_values(value)


async def find_children(parent_id: str, users: Repository) -> list[Record]:
    return await users.find_many({"parent_id": parent_id})


async def resolve_scope(principal: Principal, users: Repository) -> Scope:
    """Compute the set of students ``principal`` may see.

    Repository failures while loading a parent's children propagate as
    ``InfrastructureError``; they are never turned into an empty scope.
    """
    role = principal.role
    if role in UNRESTRICTED_ROLES:
        return Scope.all()
    if role == UserRole.STUDENT:
        return Scope.of([principal.user_id])
    if role == UserRole.PARENT:
        children = await find_children(principal.user_id, users)
        return Scope.of(child["id"] for child in children)
    return Scope()


async def can_access_student(principal: Principal, student_id: str, users: Repository) -> bool:
    scope = await resolve_scope(principal, users)
    return student_id in scope


def require_role(principal: Principal, allowed_roles: Iterable[str]) -> None:
    allowed = role_values(allowed_roles)
    if principal.role not in allowed:
        logger.info("Role %s of user %s not in %s", principal.role, principal.user_id, sorted(allowed))
        raise AccessDenied(f"Access denied. Required roles: {', '.join(sorted(allowed))}")


async def require_ownership_or_bypass(
    principal: Principal,
    resource_id: str,
    config: OwnershipConfig,
    users: Repository,
) -> None:
    """Guard a route keyed on a student id.

    Bypass roles pass without looking at ``resource_id``. Students must own
    the id, parents must have it among their children, every other role is
    denied.
    """
    role = principal.role
    if role in config.bypass_roles:
        return
    if role == UserRole.STUDENT:
        if resource_id != principal.user_id:
            raise AccessDenied("Access denied. You can only access your own data.")
        return
    if role == UserRole.PARENT:
        scope = await resolve_scope(principal, users)
        if resource_id not in scope:
            raise AccessDenied("Access denied. You can only access your children's data.")
        return
    logger.info("Ownership check denied for role %s of user %s", role, principal.user_id)
    raise AccessDenied()
