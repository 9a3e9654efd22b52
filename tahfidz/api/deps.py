"""Shared dependencies: JWT auth, role gates and student ownership guards."""
from datetime import datetime, timedelta
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from tahfidz.access import (
    OwnershipConfig,
    Principal,
    Scope,
    require_ownership_or_bypass,
    require_role,
    resolve_scope,
)
from tahfidz.config import settings
from tahfidz.exceptions import AccessDenied, InvalidRequest, Unauthenticated
from tahfidz.models.user import UserRole
from tahfidz.repository import Repositories, Repository, get_repositories

security = HTTPBearer(auto_error=False)


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, role: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(subject: str) -> str:
    expire = datetime.utcnow() + timedelta(days=settings.jwt_refresh_token_expire_days)
    to_encode = {"sub": subject, "exp": expire, "type": "refresh"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str = "access") -> str:
    """Return the user id carried by a valid token of ``expected_type``."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")
    if payload.get("type") != expected_type:
        raise Unauthenticated("Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Invalid token")
    return user_id


async def authenticate(token: str, users: Repository) -> Principal:
    """Verify a bearer token and build the principal from the stored user.

    The role is taken from the user row rather than the token so role
    changes and deactivation apply on the next request.
    """
    user_id = decode_token(token)
    user = await users.find_first({"id": user_id})
    if not user:
        raise Unauthenticated("User not found")
    if not user["is_active"]:
        raise AccessDenied("User account is deactivated")
    return Principal(user_id=user["id"], role=user["role"], is_active=True)


Repos = Annotated[Repositories, Depends(get_repositories)]


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    repos: Repos,
) -> Principal:
    if not credentials:
        raise Unauthenticated("Missing or invalid authorization header")
    return await authenticate(credentials.credentials, repos.users)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_roles(*allowed: UserRole):
    async def checker(principal: CurrentPrincipal) -> Principal:
        require_role(principal, allowed)
        return principal

    return checker


async def get_scope(principal: CurrentPrincipal, repos: Repos) -> Scope:
    return await resolve_scope(principal, repos.users)


def require_student_owner(config: OwnershipConfig, param: str = "student_id"):
    """Route guard for paths carrying a student id, e.g. ``/progress/{student_id}``."""

    async def checker(request: Request, principal: CurrentPrincipal, repos: Repos) -> Principal:
        resource_id = request.path_params.get(param)
        if not resource_id:
            raise InvalidRequest("Resource ID required")
        await require_ownership_or_bypass(principal, resource_id, config, repos.users)
        return principal

    return checker


STAFF_ROLES = (UserRole.ADMIN, UserRole.TEACHER)
STAFF_BYPASS = OwnershipConfig(bypass_roles=STAFF_ROLES)
ADMIN_BYPASS = OwnershipConfig(bypass_roles=(UserRole.ADMIN,))

# Type aliases for route injection
AccessibleScope = Annotated[Scope, Depends(get_scope)]
AdminOnly = Annotated[Principal, Depends(require_roles(UserRole.ADMIN))]
TeacherOrAdmin = Annotated[Principal, Depends(require_roles(*STAFF_ROLES))]
StudentOwnerOrStaff = Annotated[Principal, Depends(require_student_owner(STAFF_BYPASS))]


def is_staff(principal: Principal) -> bool:
    return principal.role in (UserRole.ADMIN.value, UserRole.TEACHER.value)
