"""Ziyadah (new memorization) and murojaah (review) logs with their assessments."""
import datetime as dt
from typing import Literal, Optional

from beanie import Indexed
from pydantic import BaseModel, Field, model_validator

from tahfidz.models.base import TimestampedDocument

LogType = Literal["ziyadah", "murojaah"]
Grade = Literal["A", "B", "C", "D", "E"]


class MemorizationLog(TimestampedDocument):
    student_id: Indexed(str)
    type: LogType
    surah_id: int
    start_ayah: int
    end_ayah: int
    teacher_id: Optional[str] = None
    class_id: Optional[str] = None
    session_date: Indexed(str)  # YYYY-MM-DD
    notes: Optional[str] = None
    synced_at: Optional[dt.datetime] = None
    sync_source: str = "app"

    class Settings:
        name = "memorization_logs"
        use_state_management = True


class Assessment(TimestampedDocument):
    log_id: Indexed(str)
    tajwid_score: float = 0
    fashohah_score: float = 0
    fluency_score: float = 0
    total_score: float = 0
    grade: Optional[Grade] = None
    notes: Optional[str] = None
    assessed_by: Optional[str] = None

    class Settings:
        name = "assessments"
        use_state_management = True


class MemorizationLogItem(BaseModel):
    id: Optional[str] = None
    student_id: str
    type: LogType
    surah_id: int = Field(ge=1, le=114)
    start_ayah: int = Field(ge=1)
    end_ayah: int = Field(ge=1)
    teacher_id: Optional[str] = None
    class_id: Optional[str] = None
    session_date: dt.date
    notes: Optional[str] = None
    sync_source: Literal["app", "web", "gsheet"] = "app"

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_ayah < self.start_ayah:
            raise ValueError("End ayah must be greater than or equal to start ayah")
        return self


class MemorizationLogUpdate(BaseModel):
    type: Optional[LogType] = None
    surah_id: Optional[int] = Field(default=None, ge=1, le=114)
    start_ayah: Optional[int] = Field(default=None, ge=1)
    end_ayah: Optional[int] = Field(default=None, ge=1)
    session_date: Optional[dt.date] = None
    notes: Optional[str] = None


class AssessmentItem(BaseModel):
    id: Optional[str] = None
    log_id: str
    tajwid_score: float = Field(ge=0, le=100)
    fashohah_score: float = Field(ge=0, le=100)
    fluency_score: float = Field(ge=0, le=100)
    notes: Optional[str] = None


class AssessmentUpdate(BaseModel):
    tajwid_score: Optional[float] = Field(default=None, ge=0, le=100)
    fashohah_score: Optional[float] = Field(default=None, ge=0, le=100)
    fluency_score: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


class TahfidzSyncRequest(BaseModel):
    logs: list[MemorizationLogItem] = Field(default_factory=list)
    assessments: list[AssessmentItem] = Field(default_factory=list)
