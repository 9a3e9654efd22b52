"""Exams and per-student exam results."""
from typing import Optional

from fastapi import APIRouter

from tahfidz.access import can_access_student
from tahfidz.api.deps import (
    AccessibleScope,
    AdminOnly,
    CurrentPrincipal,
    Repos,
    StudentOwnerOrStaff,
    TeacherOrAdmin,
    is_staff,
)
from tahfidz.exceptions import AccessDenied, InvalidRequest, NotFound
from tahfidz.models.exam import ExamCreate, ExamResultBulkRequest, ExamResultCreate, ExamResultScores, ExamUpdate
from tahfidz.models.user import UserRole, user_summary
from tahfidz.services.grading import calculate_grade

router = APIRouter()


async def _get_exam(repos, exam_id: str) -> dict:
    exam = await repos.exams.find_first({"id": exam_id})
    if not exam:
        raise NotFound("Exam not found")
    return exam


def _graded(exam: dict, payload: dict) -> dict:
    total = payload["total_score"]
    return {**payload, "grade": calculate_grade(total), "is_passed": total >= exam["passing_score"]}


async def _rank_results(repos, exam_id: str) -> None:
    """Number the results of an exam by total score, highest first."""
    results = await repos.exam_results.find_many({"exam_id": exam_id})
    results.sort(key=lambda r: r["total_score"], reverse=True)
    for position, result in enumerate(results, start=1):
        if result.get("rank") != position:
            await repos.exam_results.update(result["id"], {"rank": position})


async def _validate_student(repos, student_id: str) -> None:
    student = await repos.users.find_first({"id": student_id})
    if not student or student["role"] != UserRole.STUDENT:
        raise InvalidRequest(f"Invalid student ID: {student_id}")


@router.get("/")
async def list_exams(
    principal: CurrentPrincipal,
    repos: Repos,
    class_id: Optional[str] = None,
    academic_year: Optional[str] = None,
    semester: Optional[str] = None,
):
    filters = {
        k: v for k, v in {"class_id": class_id, "academic_year": academic_year, "semester": semester}.items() if v
    }
    if not is_staff(principal):
        filters["is_active"] = True
    exams = await repos.exams.find_many(filters)
    exams.sort(key=lambda e: e["exam_date"], reverse=True)
    return {"items": exams, "total": len(exams)}


@router.post("/", status_code=201)
async def create_exam(data: ExamCreate, principal: TeacherOrAdmin, repos: Repos):
    if data.class_id and not await repos.classes.find_first({"id": data.class_id}):
        raise InvalidRequest("Invalid class ID")
    return await repos.exams.create({**data.model_dump(mode="json"), "created_by": principal.user_id})


@router.get("/{exam_id}")
async def get_exam(exam_id: str, principal: CurrentPrincipal, repos: Repos):
    exam = await _get_exam(repos, exam_id)
    if not exam["is_active"] and not is_staff(principal):
        raise NotFound("Exam not found")
    return exam


@router.patch("/{exam_id}")
async def update_exam(exam_id: str, data: ExamUpdate, principal: TeacherOrAdmin, repos: Repos):
    await _get_exam(repos, exam_id)
    return await repos.exams.update(exam_id, data.model_dump(mode="json", exclude_unset=True))


@router.delete("/{exam_id}")
async def delete_exam(exam_id: str, admin: AdminOnly, repos: Repos):
    if not await repos.exams.delete(exam_id):
        raise NotFound("Exam not found")
    for result in await repos.exam_results.find_many({"exam_id": exam_id}):
        await repos.exam_results.delete(result["id"])
    return {"id": exam_id, "deleted": True}


@router.get("/{exam_id}/results")
async def list_results(exam_id: str, scope: AccessibleScope, repos: Repos):
    """Results visible to the caller, highest total first."""
    await _get_exam(repos, exam_id)
    results = [] if scope.is_empty else await repos.exam_results.find_many(scope.restrict({"exam_id": exam_id}))
    items = []
    for result in results:
        student = await repos.users.find_first({"id": result["student_id"]})
        items.append({**result, "student": user_summary(student)})
    items.sort(key=lambda r: r["total_score"], reverse=True)
    return {"items": items, "total": len(items)}


@router.post("/{exam_id}/results", status_code=201)
async def add_result(exam_id: str, data: ExamResultCreate, principal: TeacherOrAdmin, repos: Repos):
    exam = await _get_exam(repos, exam_id)
    if not await can_access_student(principal, data.student_id, repos.users):
        raise AccessDenied()
    await _validate_student(repos, data.student_id)
    if await repos.exam_results.find_first({"exam_id": exam_id, "student_id": data.student_id}):
        raise InvalidRequest("Result already exists for this student in this exam")
    payload = _graded(exam, data.model_dump(mode="json", exclude_none=True))
    result = await repos.exam_results.create({**payload, "exam_id": exam_id, "examiner_id": principal.user_id})
    await _rank_results(repos, exam_id)
    return await repos.exam_results.find_first({"id": result["id"]})


@router.post("/{exam_id}/results/bulk")
async def add_results_bulk(
    exam_id: str, data: ExamResultBulkRequest, principal: TeacherOrAdmin, scope: AccessibleScope, repos: Repos
):
    """Create or replace results for many students at once.

    Every student is checked before anything is written.
    """
    exam = await _get_exam(repos, exam_id)
    out_of_scope = sorted({r.student_id for r in data.results if r.student_id not in scope})
    if out_of_scope:
        raise AccessDenied(f"Access denied for students: {', '.join(out_of_scope)}")
    for student_id in dict.fromkeys(r.student_id for r in data.results):
        await _validate_student(repos, student_id)

    existing = {r["student_id"]: r for r in await repos.exam_results.find_many({"exam_id": exam_id})}
    created = updated = 0
    for item in data.results:
        payload = _graded(exam, item.model_dump(mode="json", exclude_none=True))
        payload.update(exam_id=exam_id, examiner_id=principal.user_id)
        if item.student_id in existing:
            await repos.exam_results.update(existing[item.student_id]["id"], payload)
            updated += 1
        else:
            existing[item.student_id] = await repos.exam_results.create(payload)
            created += 1
    await _rank_results(repos, exam_id)
    return {"message": f"Processed {created + updated} results", "created": created, "updated": updated}


@router.get("/{exam_id}/results/{student_id}")
async def get_result(exam_id: str, student_id: str, principal: StudentOwnerOrStaff, repos: Repos):
    result = await repos.exam_results.find_first({"exam_id": exam_id, "student_id": student_id})
    if not result:
        raise NotFound("Result not found")
    exam = await repos.exams.find_first({"id": exam_id})
    student = await repos.users.find_first({"id": student_id})
    return {**result, "exam": exam, "student": user_summary(student)}


@router.patch("/{exam_id}/results/{student_id}")
async def update_result(
    exam_id: str, student_id: str, data: ExamResultScores, principal: TeacherOrAdmin, repos: Repos
):
    exam = await _get_exam(repos, exam_id)
    existing = await repos.exam_results.find_first({"exam_id": exam_id, "student_id": student_id})
    if not existing:
        raise NotFound("Result not found")
    changes = data.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    payload = _graded(exam, {**changes, "total_score": changes.get("total_score", existing["total_score"])})
    payload["examiner_id"] = principal.user_id
    await repos.exam_results.update(existing["id"], payload)
    await _rank_results(repos, exam_id)
    return await repos.exam_results.find_first({"id": existing["id"]})
