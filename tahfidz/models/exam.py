"""Tahfidz exams and per-student results."""
import datetime as dt
from typing import Literal, Optional

from beanie import Indexed
from pydantic import BaseModel, Field

from tahfidz.models.base import TimestampedDocument
from tahfidz.models.memorization import Grade

ExamType = Literal["mid_semester", "end_semester", "monthly", "weekly", "placement"]
Semester = Literal["1", "2"]
ACADEMIC_YEAR_PATTERN = r"^\d{4}/\d{4}$"


class Exam(TimestampedDocument):
    name: str
    description: Optional[str] = None
    exam_type: ExamType
    class_id: Optional[Indexed(str)] = None
    surah_id: Optional[int] = None
    start_surah: Optional[int] = None
    end_surah: Optional[int] = None
    start_ayah: Optional[int] = None
    end_ayah: Optional[int] = None
    exam_date: str  # YYYY-MM-DD
    academic_year: str  # e.g. 2025/2026
    semester: Semester
    passing_score: float = 70
    max_score: float = 100
    created_by: Optional[str] = None
    is_active: bool = True

    class Settings:
        name = "exams"
        use_state_management = True


class ExamResult(TimestampedDocument):
    exam_id: Indexed(str)
    student_id: Indexed(str)
    hafalan_score: float = 0
    tajwid_score: float = 0
    fashohah_score: float = 0
    fluency_score: float = 0
    makhorijul_huruf_score: Optional[float] = None
    tartil_score: Optional[float] = None
    total_score: float = 0
    grade: Optional[Grade] = None
    is_passed: bool = False
    rank: Optional[int] = None
    examiner_id: Optional[str] = None
    notes: Optional[str] = None
    feedback: Optional[str] = None
    exam_taken_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)

    class Settings:
        name = "exam_results"
        use_state_management = True


class ExamCreate(BaseModel):
    name: str = Field(min_length=2)
    description: Optional[str] = None
    exam_type: ExamType
    class_id: Optional[str] = None
    surah_id: Optional[int] = Field(default=None, ge=1, le=114)
    start_surah: Optional[int] = Field(default=None, ge=1, le=114)
    end_surah: Optional[int] = Field(default=None, ge=1, le=114)
    start_ayah: Optional[int] = Field(default=None, ge=1)
    end_ayah: Optional[int] = Field(default=None, ge=1)
    exam_date: dt.date
    academic_year: str = Field(pattern=ACADEMIC_YEAR_PATTERN)
    semester: Semester
    passing_score: float = Field(default=70, ge=0, le=100)
    max_score: float = Field(default=100, ge=0)


class ExamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None
    exam_type: Optional[ExamType] = None
    class_id: Optional[str] = None
    exam_date: Optional[dt.date] = None
    passing_score: Optional[float] = Field(default=None, ge=0, le=100)
    max_score: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ExamResultScores(BaseModel):
    """Scores entered by the examiner; ``total_score`` is their final mark."""
    hafalan_score: Optional[float] = Field(default=None, ge=0, le=100)
    tajwid_score: Optional[float] = Field(default=None, ge=0, le=100)
    fashohah_score: Optional[float] = Field(default=None, ge=0, le=100)
    fluency_score: Optional[float] = Field(default=None, ge=0, le=100)
    makhorijul_huruf_score: Optional[float] = Field(default=None, ge=0, le=100)
    tartil_score: Optional[float] = Field(default=None, ge=0, le=100)
    total_score: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None
    feedback: Optional[str] = None


class ExamResultCreate(ExamResultScores):
    student_id: str
    total_score: float = Field(ge=0, le=100)


class ExamResultBulkRequest(BaseModel):
    results: list[ExamResultCreate] = Field(min_length=1)
