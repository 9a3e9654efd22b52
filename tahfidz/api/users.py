"""User CRUD - RBAC management (admin only)."""
from typing import Optional

from fastapi import APIRouter

from tahfidz.api.deps import AdminOnly, Repos, get_password_hash
from tahfidz.exceptions import InvalidRequest, NotFound
from tahfidz.models.user import UserCreate, UserRole, UserUpdate, public_user

router = APIRouter()


async def validate_parent_link(repos, role: UserRole, parent_id: Optional[str]) -> None:
    """Only students may carry a parent_id, and it must name a parent account."""
    if not parent_id:
        return
    if role != UserRole.STUDENT:
        raise InvalidRequest("Only student accounts can be linked to a parent")
    parent = await repos.users.find_first({"id": parent_id})
    if not parent or parent["role"] != UserRole.PARENT:
        raise InvalidRequest("parent_id must reference a parent account")


@router.get("/")
async def list_users(admin: AdminOnly, repos: Repos, role: Optional[UserRole] = None):
    filters = {"role": role.value} if role else {}
    users = await repos.users.find_many(filters)
    users.sort(key=lambda u: u.get("created_at") or "", reverse=True)
    return {"items": [public_user(u) for u in users], "total": len(users)}


@router.get("/{user_id}")
async def get_user(user_id: str, admin: AdminOnly, repos: Repos):
    user = await repos.users.find_first({"id": user_id})
    if not user:
        raise NotFound("User not found")
    return public_user(user)


@router.post("/", status_code=201)
async def create_user(data: UserCreate, admin: AdminOnly, repos: Repos):
    if await repos.users.find_first({"email": data.email}):
        raise InvalidRequest("Email already registered")
    await validate_parent_link(repos, data.role, data.parent_id)
    user = await repos.users.create(
        {
            "name": data.name,
            "email": data.email,
            "hashed_password": get_password_hash(data.password),
            "role": data.role,
            "parent_id": data.parent_id,
            "phone": data.phone,
            "address": data.address,
        }
    )
    return public_user(user)


async def _unlink_children(repos, parent_id: str) -> None:
    for child in await repos.users.find_many({"parent_id": parent_id}):
        await repos.users.update(child["id"], {"parent_id": None})


@router.patch("/{user_id}")
async def update_user(user_id: str, data: UserUpdate, admin: AdminOnly, repos: Repos):
    existing = await repos.users.find_first({"id": user_id})
    if not existing:
        raise NotFound("User not found")
    changes = data.model_dump(mode="json", exclude_unset=True)
    if "email" in changes and changes["email"] != existing["email"]:
        if await repos.users.find_first({"email": changes["email"]}):
            raise InvalidRequest("Email already registered")
    role = UserRole(changes.get("role") or existing["role"])
    parent_id = changes["parent_id"] if "parent_id" in changes else existing.get("parent_id")
    if role != UserRole.STUDENT and parent_id and "parent_id" not in changes:
        # No longer a student: drop the stale parent link.
        changes["parent_id"] = parent_id = None
    await validate_parent_link(repos, role, parent_id)
    password = changes.pop("password", None)
    if password:
        changes["hashed_password"] = get_password_hash(password)
    user = await repos.users.update(user_id, changes)
    if existing["role"] == UserRole.PARENT and role != UserRole.PARENT:
        # Children may only point at parent accounts.
        await _unlink_children(repos, user_id)
    return public_user(user)


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: AdminOnly, repos: Repos):
    if user_id == admin.user_id:
        raise InvalidRequest("You cannot delete your own account")
    if not await repos.users.delete(user_id):
        raise NotFound("User not found")
    await _unlink_children(repos, user_id)
    return {"id": user_id, "deleted": True}
