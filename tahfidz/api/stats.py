"""Progress and attendance statistics."""
from collections import defaultdict
from datetime import date, timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Query

from tahfidz.access import Scope, can_access_student
from tahfidz.api.deps import AccessibleScope, CurrentPrincipal, Repos, TeacherOrAdmin
from tahfidz.exceptions import AccessDenied, NotFound
from tahfidz.models.user import UserRole
from tahfidz.services.grading import mean
from tahfidz.services.progress import assessments_for_logs, attendance_summary, memorized_ayahs, student_progress

router = APIRouter()

LeaderboardType = Literal["ayahs", "score", "attendance"]
LEADERBOARD_ATTENDANCE_DAYS = 30


async def _accessible_student(repos, principal, student_id: str) -> dict:
    if not await can_access_student(principal, student_id, repos.users):
        raise AccessDenied("Access denied to this student's data")
    student = await repos.users.find_first({"id": student_id})
    if not student or student["role"] != UserRole.STUDENT:
        raise NotFound("Student not found")
    return student


@router.get("/progress/{student_id}")
async def get_progress(student_id: str, principal: CurrentPrincipal, repos: Repos):
    student = await _accessible_student(repos, principal, student_id)
    return await student_progress(repos, student)


@router.get("/attendance/{student_id}")
async def get_attendance_stats(
    student_id: str,
    principal: CurrentPrincipal,
    repos: Repos,
    year: Optional[int] = Query(None, ge=2020, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    """Attendance summary and per-day heatmap, optionally limited to a year or month."""
    await _accessible_student(repos, principal, student_id)
    records = await repos.attendance.find_many({"student_id": student_id})
    if year:
        prefix = f"{year:04d}-{month:02d}" if month else f"{year:04d}"
        records = [r for r in records if r["date"].startswith(prefix)]

    by_day: dict[str, list[str]] = defaultdict(list)
    for record in records:
        by_day[record["date"]].append(record["status"])
    heatmap = [{"date": day, "statuses": statuses} for day, statuses in sorted(by_day.items())]
    return {"student_id": student_id, "summary": attendance_summary(records), "heatmap": heatmap}


@router.get("/class/{class_id}")
async def get_class_stats(class_id: str, principal: TeacherOrAdmin, repos: Repos):
    cls = await repos.classes.find_first({"id": class_id})
    if not cls:
        raise NotFound("Class not found")
    members = await repos.class_members.find_many({"class_id": class_id})
    students = []
    for member in members:
        student = await repos.users.find_first({"id": member["student_id"]})
        if not student:
            continue
        logs = await repos.memorization_logs.find_many({"student_id": student["id"]})
        attendance = await repos.attendance.find_many({"student_id": student["id"], "class_id": class_id})
        students.append(
            {
                "id": student["id"],
                "name": student["name"],
                "total_ayahs_memorized": len(memorized_ayahs(logs)),
                "attendance_percentage": attendance_summary(attendance)["attendance_percentage"],
            }
        )
    students.sort(key=lambda s: s["total_ayahs_memorized"], reverse=True)
    return {"class": {"id": cls["id"], "name": cls["name"]}, "member_count": len(students), "students": students}


def _by_student(records: list[dict]) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = defaultdict(list)
    for record in records:
        grouped[record["student_id"]].append(record)
    return grouped


async def _leaderboard_values(repos, scope: Scope, kind: str) -> dict[str, float]:
    if kind == "ayahs":
        logs = await repos.memorization_logs.find_many(scope.restrict({"type": "ziyadah"}))
        return {sid: len(memorized_ayahs(rows)) for sid, rows in _by_student(logs).items()}
    if kind == "score":
        logs = await repos.memorization_logs.find_many(scope.restrict())
        owner = {log["id"]: log["student_id"] for log in logs}
        scores: dict[str, list[float]] = defaultdict(list)
        for assessment in await assessments_for_logs(repos, logs):
            scores[owner[assessment["log_id"]]].append(assessment["total_score"])
        return {sid: round(mean(values), 2) for sid, values in scores.items()}
    since = (date.today() - timedelta(days=LEADERBOARD_ATTENDANCE_DAYS)).isoformat()
    records = [r for r in await repos.attendance.find_many(scope.restrict()) if r["date"] >= since]
    return {sid: attendance_summary(rows)["attendance_percentage"] for sid, rows in _by_student(records).items()}


@router.get("/leaderboard")
async def get_leaderboard(
    principal: TeacherOrAdmin,
    scope: AccessibleScope,
    repos: Repos,
    type: LeaderboardType = "ayahs",
    limit: int = Query(10, ge=1, le=50),
):
    """Top students by memorized ayahs, average assessment score or recent attendance rate."""
    values = {} if scope.is_empty else await _leaderboard_values(repos, scope, type)
    ranked = sorted(values.items(), key=lambda item: item[1], reverse=True)[:limit]
    students = {}
    if ranked:
        rows = await repos.users.find_many({"id": [sid for sid, _ in ranked]})
        students = {row["id"]: row for row in rows}
    leaderboard = [
        {"student_id": sid, "student_name": students[sid]["name"], "value": value}
        for sid, value in ranked
        if sid in students
    ]
    return {"type": type, "leaderboard": leaderboard}
