"""Attendance per student and session, synced in bulk from the teacher app."""
import io
import logging
from datetime import date, datetime
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from tahfidz.access import Principal, can_access_student
from tahfidz.api.deps import AccessibleScope, AdminOnly, CurrentPrincipal, Repos, TeacherOrAdmin
from tahfidz.exceptions import AccessDenied, NotFound
from tahfidz.models.attendance import AttendanceBulkRequest, AttendanceStatus, AttendanceUpdate, SessionType
from tahfidz.models.user import user_summary

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_accessible(repos, principal: Principal, attendance_id: str) -> dict:
    record = await repos.attendance.find_first({"id": attendance_id})
    if not record:
        raise NotFound("Attendance record not found")
    if not await can_access_student(principal, record["student_id"], repos.users):
        raise AccessDenied()
    return record


@router.post("/")
async def sync_attendance(data: AttendanceBulkRequest, principal: TeacherOrAdmin, scope: AccessibleScope, repos: Repos):
    """Create or update attendance records; an item whose id exists is updated in place."""
    out_of_scope = sorted({item.student_id for item in data.items if item.student_id not in scope})
    if out_of_scope:
        raise AccessDenied(f"Access denied for students: {', '.join(out_of_scope)}")

    results = {"created": 0, "updated": 0}
    for item in data.items:
        payload = item.model_dump(mode="json", exclude={"id"})
        payload.update(recorded_by=principal.user_id, synced_at=datetime.utcnow())
        existing = await repos.attendance.find_first({"id": item.id}) if item.id else None
        if existing:
            await repos.attendance.update(item.id, payload)
            results["updated"] += 1
        else:
            if item.id:
                payload["id"] = item.id
            await repos.attendance.create(payload)
            results["created"] += 1
    logger.info("User %s synced %d attendance records", principal.user_id, len(data.items))
    return {"message": f"Synced {results['created'] + results['updated']} attendance records", **results}


@router.get("/")
async def list_attendance(
    scope: AccessibleScope,
    repos: Repos,
    student_id: Optional[str] = None,
    class_id: Optional[str] = None,
    session_type: Optional[SessionType] = None,
    status: Optional[AttendanceStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
):
    if student_id and student_id not in scope:
        raise AccessDenied()
    filters = {
        key: value
        for key, value in {
            "student_id": student_id,
            "class_id": class_id,
            "session_type": session_type,
            "status": status,
        }.items()
        if value
    }
    records = [] if scope.is_empty else await repos.attendance.find_many(scope.restrict(filters))
    if start_date:
        records = [r for r in records if r["date"] >= start_date.isoformat()]
    if end_date:
        records = [r for r in records if r["date"] <= end_date.isoformat()]
    records.sort(key=lambda r: (r["date"], r.get("created_at") or ""), reverse=True)

    total = len(records)
    offset = (page - 1) * limit
    return {
        "items": records[offset : offset + limit],
        "pagination": {"page": page, "limit": limit, "total": total, "total_pages": -(-total // limit)},
    }


@router.get("/export")
async def export_attendance(
    admin: AdminOnly,
    repos: Repos,
    from_date: date,
    to_date: date,
    class_id: Optional[str] = None,
    format: str = Query("csv", enum=["csv", "excel"]),
):
    """Download attendance for a date range as CSV or Excel."""
    filters = {"class_id": class_id} if class_id else {}
    records = [
        r
        for r in await repos.attendance.find_many(filters)
        if from_date.isoformat() <= r["date"] <= to_date.isoformat()
    ]
    if not records:
        raise NotFound("No records found for the given criteria")

    names: dict[str, str] = {}
    for student_id in {r["student_id"] for r in records}:
        student = await repos.users.find_first({"id": student_id})
        names[student_id] = student["name"] if student else "Unknown"

    df = pd.DataFrame(
        [
            {
                "Date": r["date"],
                "Student ID": r["student_id"],
                "Student Name": names[r["student_id"]],
                "Session": r["session_type"],
                "Status": r["status"],
                "Notes": r.get("notes") or "",
            }
            for r in records
        ]
    ).sort_values(["Date", "Student Name"])

    filename = f"attendance_{class_id or 'all'}_{from_date}_{to_date}"
    if format == "csv":
        stream = io.StringIO()
        df.to_csv(stream, index=False)
        return StreamingResponse(
            iter([stream.getvalue()]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
        )
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Attendance")
    output.seek(0)
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"},
    )


@router.get("/{attendance_id}")
async def get_attendance(attendance_id: str, principal: CurrentPrincipal, repos: Repos):
    record = await _get_accessible(repos, principal, attendance_id)
    student = await repos.users.find_first({"id": record["student_id"]})
    return {**record, "student": user_summary(student)}


@router.patch("/{attendance_id}")
async def update_attendance(attendance_id: str, data: AttendanceUpdate, principal: TeacherOrAdmin, repos: Repos):
    await _get_accessible(repos, principal, attendance_id)
    changes = data.model_dump(mode="json", exclude_unset=True)
    changes["recorded_by"] = principal.user_id
    return await repos.attendance.update(attendance_id, changes)


@router.delete("/{attendance_id}")
async def delete_attendance(attendance_id: str, principal: TeacherOrAdmin, repos: Repos):
    await _get_accessible(repos, principal, attendance_id)
    await repos.attendance.delete(attendance_id)
    return {"id": attendance_id, "deleted": True}
