"""Report cards (raport) per student and semester."""
import datetime as dt
from typing import Literal, Optional

from beanie import Indexed
from pydantic import BaseModel, Field

from tahfidz.models.base import TimestampedDocument
from tahfidz.models.exam import ACADEMIC_YEAR_PATTERN, Semester
from tahfidz.models.memorization import Grade

ReportStatus = Literal["draft", "published", "archived"]


class Report(TimestampedDocument):
    student_id: Indexed(str)
    class_id: Optional[str] = None
    academic_year: str
    semester: Semester

    # Attendance summary
    total_sessions: int = 0
    present_count: int = 0
    absent_count: int = 0
    sick_count: int = 0
    leave_count: int = 0
    attendance_percentage: float = 0

    # Memorization progress
    total_ayahs_memorized: int = 0
    total_new_ayahs: int = 0
    total_murojaah_sessions: int = 0
    current_surah: Optional[int] = None
    current_ayah: Optional[int] = None
    target_ayahs: Optional[int] = None
    progress_percentage: float = 0

    # Averages of daily assessments
    avg_tajwid_score: float = 0
    avg_fashohah_score: float = 0
    avg_fluency_score: float = 0
    avg_total_score: float = 0

    mid_semester_score: Optional[float] = None
    end_semester_score: Optional[float] = None
    final_score: float = 0
    final_grade: Optional[Grade] = None
    class_rank: Optional[int] = None
    total_students: Optional[int] = None

    status: ReportStatus = "draft"
    teacher_notes: Optional[str] = None
    principal_notes: Optional[str] = None
    recommendations: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[dt.datetime] = None
    published_at: Optional[dt.datetime] = None

    class Settings:
        name = "reports"
        use_state_management = True


class ReportCreate(BaseModel):
    student_id: str
    class_id: Optional[str] = None
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester
    target_ayahs: Optional[int] = Field(default=None, ge=0)
    teacher_notes: Optional[str] = None
    recommendations: Optional[str] = None


class ReportUpdate(BaseModel):
    class_id: Optional[str] = None
    target_ayahs: Optional[int] = Field(default=None, ge=0)
    teacher_notes: Optional[str] = None
    principal_notes: Optional[str] = None
    recommendations: Optional[str] = None
    status: Optional[ReportStatus] = None


class ReportGenerateRequest(BaseModel):
    """Generate for the listed students, or for every member of ``class_id``."""
    class_id: Optional[str] = None
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester
    student_ids: Optional[list[str]] = None
