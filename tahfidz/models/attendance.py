import datetime as dt
from typing import Literal, Optional

from beanie import Indexed
from pydantic import BaseModel, Field

from tahfidz.models.base import TimestampedDocument

SessionType = Literal["subuh", "ziyadah", "murojaah", "tahsin"]
AttendanceStatus = Literal["present", "absent", "sick", "leave", "late"]
SyncSource = Literal["app", "web", "gsheet"]


class Attendance(TimestampedDocument):
    """One student's presence at one session on one date."""
    student_id: Indexed(str)
    class_id: Optional[str] = None
    session_type: SessionType
    status: AttendanceStatus
    proof_url: Optional[str] = None  # sick/leave documentation
    notes: Optional[str] = None
    date: Indexed(str)  # YYYY-MM-DD
    recorded_by: Optional[str] = None
    synced_at: Optional[dt.datetime] = None
    sync_source: SyncSource = "app"

    class Settings:
        name = "attendance"
        use_state_management = True


class AttendanceItem(BaseModel):
    id: Optional[str] = None  # set by offline clients; an existing id is updated in place
    student_id: str
    class_id: Optional[str] = None
    session_type: SessionType
    status: AttendanceStatus
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    date: dt.date
    sync_source: SyncSource = "app"


class AttendanceBulkRequest(BaseModel):
    items: list[AttendanceItem] = Field(min_length=1)


class AttendanceUpdate(BaseModel):
    session_type: Optional[SessionType] = None
    status: Optional[AttendanceStatus] = None
    proof_url: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[dt.date] = None
