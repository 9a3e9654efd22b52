"""RBAC: Admins, Teachers, Parents, Students."""
from enum import Enum
from typing import Optional

from beanie import Indexed
from pydantic import BaseModel, EmailStr, Field

from tahfidz.models.base import TimestampedDocument


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"


class User(TimestampedDocument):
    """User document for every role.

    ``parent_id`` links a student to the parent account that may see their data.
    """

    name: str
    email: Indexed(EmailStr, unique=True)
    hashed_password: str
    role: UserRole = UserRole.STUDENT
    parent_id: Optional[Indexed(str)] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool = True

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    name: str = Field(min_length=2)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = UserRole.STUDENT
    parent_id: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class UserUpdate(BaseModel):
    """All fields optional for PATCH."""
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[UserRole] = None
    parent_id: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: Optional[bool] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)


def public_user(record: dict) -> dict:
    """User record without credentials."""
    return {k: v for k, v in record.items() if k != "hashed_password"}


def user_summary(record: dict | None) -> dict | None:
    if not record:
        return None
    return {"id": record["id"], "name": record["name"], "email": record["email"]}
