"""JWT-based stateless authentication."""
from fastapi import APIRouter
from pydantic import BaseModel, EmailStr

from tahfidz.api.deps import (
    CurrentPrincipal,
    Repos,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from tahfidz.api.users import validate_parent_link
from tahfidz.config import settings
from tahfidz.exceptions import AccessDenied, InvalidRequest, NotFound, Unauthenticated
from tahfidz.models.user import ProfileUpdate, UserCreate, UserRole, public_user

router = APIRouter()

SELF_REGISTER_ROLES = (UserRole.STUDENT, UserRole.PARENT)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _tokens_for(user: dict) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user["id"], user["role"]),
        refresh_token=create_refresh_token(user["id"]),
    )


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, repos: Repos):
    user = await repos.users.find_first({"email": req.email})
    if not user or not verify_password(req.password, user["hashed_password"]):
        raise Unauthenticated("Invalid credentials")
    if not user["is_active"]:
        raise AccessDenied("User account is deactivated")
    return _tokens_for(user)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: UserCreate, repos: Repos):
    if not settings.allow_public_registration:
        raise AccessDenied("Registration is disabled")
    if data.role not in SELF_REGISTER_ROLES:
        raise AccessDenied("Only student and parent accounts can self-register")
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
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: RefreshRequest, repos: Repos):
    user_id = decode_token(req.refresh_token, expected_type="refresh")
    user = await repos.users.find_first({"id": user_id})
    if not user or not user["is_active"]:
        raise Unauthenticated("User not found or inactive")
    return _tokens_for(user)


@router.get("/me")
async def me(principal: CurrentPrincipal, repos: Repos):
    user = await repos.users.find_first({"id": principal.user_id})
    if not user:
        raise NotFound("User not found")
    result = public_user(user)
    if principal.role == UserRole.PARENT:
        children = await repos.users.find_many({"parent_id": principal.user_id})
        result["children"] = [{"id": c["id"], "name": c["name"]} for c in children]
    return result


@router.put("/me")
async def update_me(data: ProfileUpdate, principal: CurrentPrincipal, repos: Repos):
    changes = data.model_dump(mode="json", exclude_unset=True)
    password = changes.pop("password", None)
    if password:
        changes["hashed_password"] = get_password_hash(password)
    user = await repos.users.update(principal.user_id, changes)
    if not user:
        raise NotFound("User not found")
    return public_user(user)
