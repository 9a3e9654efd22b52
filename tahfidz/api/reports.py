"""Report cards: manual creation, generation from recorded data, publishing."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter

from tahfidz.access import Principal, can_access_student
from tahfidz.api.deps import AccessibleScope, AdminOnly, CurrentPrincipal, Repos, TeacherOrAdmin, is_staff
from tahfidz.exceptions import AccessDenied, InvalidRequest, NotFound
from tahfidz.models.report import ReportCreate, ReportGenerateRequest, ReportStatus, ReportUpdate
from tahfidz.models.user import UserRole, user_summary
from tahfidz.services.reports import build_report_data, generate_report, rank_class_reports

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_visible_report(repos, principal: Principal, report_id: str) -> dict:
    report = await repos.reports.find_first({"id": report_id})
    if not report:
        raise NotFound("Report not found")
    if not await can_access_student(principal, report["student_id"], repos.users):
        raise AccessDenied()
    if not is_staff(principal) and report["status"] != "published":
        raise AccessDenied("Report not yet published")
    return report


@router.get("/")
async def list_reports(
    principal: CurrentPrincipal,
    scope: AccessibleScope,
    repos: Repos,
    academic_year: Optional[str] = None,
    semester: Optional[str] = None,
    class_id: Optional[str] = None,
    status: Optional[ReportStatus] = None,
):
    """Staff see every report; parents and students only published reports in their scope."""
    filters = {
        k: v for k, v in {"academic_year": academic_year, "semester": semester, "class_id": class_id}.items() if v
    }
    if is_staff(principal):
        if status:
            filters["status"] = status
    else:
        filters["status"] = "published"
    reports = [] if scope.is_empty else await repos.reports.find_many(scope.restrict(filters))
    items = []
    for report in reports:
        student = await repos.users.find_first({"id": report["student_id"]})
        items.append({**report, "student": user_summary(student)})
    items.sort(key=lambda r: r.get("created_at") or "", reverse=True)
    return {"items": items, "total": len(items)}


@router.get("/{report_id}")
async def get_report(report_id: str, principal: CurrentPrincipal, repos: Repos):
    report = await _get_visible_report(repos, principal, report_id)
    student = await repos.users.find_first({"id": report["student_id"]})
    cls = await repos.classes.find_first({"id": report["class_id"]}) if report.get("class_id") else None
    exam_results = await repos.exam_results.find_many({"student_id": report["student_id"]})
    return {**report, "student": user_summary(student), "class": cls, "exam_results": exam_results}


def _contact(user: dict | None, *fields: str) -> dict | None:
    if not user:
        return None
    return {"id": user["id"], "name": user["name"], **{field: user.get(field) for field in fields}}


@router.get("/{report_id}/print")
async def print_report(report_id: str, principal: CurrentPrincipal, repos: Repos):
    """Everything a printed report card shows, with the same visibility rules as the report itself."""
    report = await _get_visible_report(repos, principal, report_id)
    student = await repos.users.find_first({"id": report["student_id"]})
    parent = None
    if student and student.get("parent_id"):
        parent = await repos.users.find_first({"id": student["parent_id"]})
    cls = await repos.classes.find_first({"id": report["class_id"]}) if report.get("class_id") else None
    teacher = None
    if cls and cls.get("teacher_id"):
        teacher = await repos.users.find_first({"id": cls["teacher_id"]})
    approver = await repos.users.find_first({"id": report["approved_by"]}) if report.get("approved_by") else None
    return {
        "report": report,
        "student": _contact(student, "email", "phone", "address"),
        "parent": _contact(parent, "phone"),
        "class": {"id": cls["id"], "name": cls["name"]} if cls else None,
        "teacher": _contact(teacher),
        "approver": _contact(approver),
        "printed_at": datetime.utcnow(),
    }


@router.post("/", status_code=201)
async def create_report(data: ReportCreate, principal: TeacherOrAdmin, repos: Repos):
    student = await repos.users.find_first({"id": data.student_id})
    if not student or student["role"] != UserRole.STUDENT:
        raise InvalidRequest("Invalid student ID")
    if await repos.reports.find_first(
        {"student_id": data.student_id, "academic_year": data.academic_year, "semester": data.semester}
    ):
        raise InvalidRequest("Report already exists for this student and semester")
    summary = await build_report_data(
        repos, data.student_id, data.academic_year, data.semester, data.target_ayahs
    )
    return await repos.reports.create({**data.model_dump(mode="json"), **summary})


@router.post("/generate")
async def generate_reports(data: ReportGenerateRequest, principal: TeacherOrAdmin, scope: AccessibleScope, repos: Repos):
    """Create or refresh draft reports for a class or an explicit list of students."""
    if data.student_ids:
        student_ids = data.student_ids
    elif data.class_id:
        members = await repos.class_members.find_many({"class_id": data.class_id})
        student_ids = [m["student_id"] for m in members]
    else:
        raise InvalidRequest("Provide class_id or student_ids")
    out_of_scope = sorted(s for s in set(student_ids) if s not in scope)
    if out_of_scope:
        raise AccessDenied(f"Access denied for students: {', '.join(out_of_scope)}")

    created = updated = skipped = 0
    errors = []
    for student_id in student_ids:
        student = await repos.users.find_first({"id": student_id})
        if not student or student["role"] != UserRole.STUDENT:
            errors.append({"student_id": student_id, "error": "Student not found"})
            continue
        report, was_created = await generate_report(
            repos, student, data.academic_year, data.semester, data.class_id
        )
        if was_created:
            created += 1
        elif report["status"] == "draft":
            updated += 1
        else:
            skipped += 1
    if data.class_id and created + updated:
        await rank_class_reports(repos, data.class_id, data.academic_year, data.semester)
    logger.info("User %s generated reports: %d created, %d updated", principal.user_id, created, updated)
    return {"created": created, "updated": updated, "skipped": skipped, "errors": errors}


@router.patch("/{report_id}")
async def update_report(report_id: str, data: ReportUpdate, principal: TeacherOrAdmin, repos: Repos):
    changes = data.model_dump(mode="json", exclude_unset=True)
    if changes.get("status") == "published" and principal.role != UserRole.ADMIN:
        raise AccessDenied("Only admins can publish reports")
    report = await repos.reports.update(report_id, changes)
    if not report:
        raise NotFound("Report not found")
    return report


@router.post("/{report_id}/publish")
async def publish_report(report_id: str, admin: AdminOnly, repos: Repos):
    now = datetime.utcnow()
    report = await repos.reports.update(
        report_id, {"status": "published", "published_at": now, "approved_by": admin.user_id, "approved_at": now}
    )
    if not report:
        raise NotFound("Report not found")
    return report


@router.delete("/{report_id}")
async def delete_report(report_id: str, admin: AdminOnly, repos: Repos):
    if not await repos.reports.delete(report_id):
        raise NotFound("Report not found")
    return {"id": report_id, "deleted": True}
