from datetime import datetime
from typing import Optional

from beanie import Indexed
from pydantic import BaseModel, Field

from tahfidz.models.base import TimestampedDocument


class SchoolClass(TimestampedDocument):
    """Halaqah: a study group led by one teacher."""
    name: str
    description: Optional[str] = None
    teacher_id: Optional[Indexed(str)] = None
    schedule: Optional[str] = None  # JSON string with the weekly schedule
    is_active: bool = True

    class Settings:
        name = "classes"
        use_state_management = True


class ClassMember(TimestampedDocument):
    class_id: Indexed(str)
    student_id: Indexed(str)
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "class_members"
        use_state_management = True


class ClassCreate(BaseModel):
    name: str = Field(min_length=2)
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    schedule: Optional[str] = None


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    schedule: Optional[str] = None
    is_active: Optional[bool] = None


class ClassMemberCreate(BaseModel):
    student_id: str


class ClassTransferRequest(BaseModel):
    student_id: str
    to_class_id: str
