"""Beanie document models and Pydantic schemas."""
from tahfidz.models.user import User, UserRole, UserCreate, UserUpdate, ProfileUpdate
from tahfidz.models.school_class import SchoolClass, ClassMember, ClassCreate, ClassUpdate, ClassMemberCreate, ClassTransferRequest
from tahfidz.models.attendance import Attendance, AttendanceItem, AttendanceBulkRequest, AttendanceUpdate
from tahfidz.models.memorization import (
    MemorizationLog,
    Assessment,
    MemorizationLogItem,
    MemorizationLogUpdate,
    AssessmentItem,
    AssessmentUpdate,
    TahfidzSyncRequest,
)
from tahfidz.models.exam import Exam, ExamResult, ExamCreate, ExamUpdate, ExamResultScores, ExamResultCreate, ExamResultBulkRequest
from tahfidz.models.report import Report, ReportCreate, ReportUpdate, ReportGenerateRequest

DOCUMENT_MODELS = [
    User,
    SchoolClass,
    ClassMember,
    Attendance,
    MemorizationLog,
    Assessment,
    Exam,
    ExamResult,
    Report,
]

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserUpdate",
    "ProfileUpdate",
    "SchoolClass",
    "ClassMember",
    "ClassCreate",
    "ClassUpdate",
    "ClassMemberCreate",
    "ClassTransferRequest",
    "Attendance",
    "AttendanceItem",
    "AttendanceBulkRequest",
    "AttendanceUpdate",
    "MemorizationLog",
    "Assessment",
    "MemorizationLogItem",
    "MemorizationLogUpdate",
    "AssessmentItem",
    "AssessmentUpdate",
    "TahfidzSyncRequest",
    "Exam",
    "ExamResult",
    "ExamCreate",
    "ExamUpdate",
    "ExamResultScores",
    "ExamResultCreate",
    "ExamResultBulkRequest",
    "Report",
    "ReportCreate",
    "ReportUpdate",
    "ReportGenerateRequest",
    "DOCUMENT_MODELS",
]
