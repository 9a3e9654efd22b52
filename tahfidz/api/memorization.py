"""Memorization logs (ziyadah / murojaah) and their daily assessments."""
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Query

from tahfidz.access import Principal, can_access_student
from tahfidz.api.deps import AccessibleScope, CurrentPrincipal, Repos, TeacherOrAdmin
from tahfidz.exceptions import AccessDenied, InvalidRequest, NotFound
from tahfidz.models.memorization import (
    AssessmentItem,
    AssessmentUpdate,
    LogType,
    MemorizationLogUpdate,
    TahfidzSyncRequest,
)
from tahfidz.services.grading import assessment_total, calculate_grade

logger = logging.getLogger(__name__)

router = APIRouter()


def _scored(scores: dict) -> dict:
    total = assessment_total(scores["tajwid_score"], scores["fashohah_score"], scores["fluency_score"])
    return {**scores, "total_score": round(total, 2), "grade": calculate_grade(total)}


async def _get_accessible_log(repos, principal: Principal, log_id: str) -> dict:
    log = await repos.memorization_logs.find_first({"id": log_id})
    if not log:
        raise NotFound("Memorization log not found")
    if not await can_access_student(principal, log["student_id"], repos.users):
        raise AccessDenied()
    return log


async def _upsert(repo, item_id: Optional[str], payload: dict) -> bool:
    """Update the record with ``item_id`` if present, create it otherwise. True when created."""
    if item_id and await repo.find_first({"id": item_id}):
        await repo.update(item_id, payload)
        return False
    if item_id:
        payload = {**payload, "id": item_id}
    await repo.create(payload)
    return True


@router.post("/")
async def sync_tahfidz(data: TahfidzSyncRequest, principal: TeacherOrAdmin, scope: AccessibleScope, repos: Repos):
    """Bulk sync of memorization logs and assessments from the teacher app.

    Nothing is written unless every assessment names a stored log or one in this batch.
    """
    out_of_scope = sorted({log.student_id for log in data.logs if log.student_id not in scope})
    if out_of_scope:
        raise AccessDenied(f"Access denied for students: {', '.join(out_of_scope)}")
    synced_log_ids = {log.id for log in data.logs if log.id}
    for log_id in dict.fromkeys(a.log_id for a in data.assessments):
        if log_id not in synced_log_ids and not await repos.memorization_logs.find_first({"id": log_id}):
            raise InvalidRequest(f"Memorization log {log_id} not found")

    results = {
        "logs": {"created": 0, "updated": 0},
        "assessments": {"created": 0, "updated": 0},
    }
    now = datetime.utcnow()
    for log in data.logs:
        payload = log.model_dump(mode="json", exclude={"id"})
        payload.update(teacher_id=log.teacher_id or principal.user_id, synced_at=now)
        created = await _upsert(repos.memorization_logs, log.id, payload)
        results["logs"]["created" if created else "updated"] += 1

    for assessment in data.assessments:
        payload = _scored(assessment.model_dump(mode="json", exclude={"id"}))
        payload["assessed_by"] = principal.user_id
        created = await _upsert(repos.assessments, assessment.id, payload)
        results["assessments"]["created" if created else "updated"] += 1

    logger.info(
        "User %s synced %d logs and %d assessments", principal.user_id, len(data.logs), len(data.assessments)
    )
    return {"message": "Tahfidz data synced successfully", **results}


@router.get("/logs")
async def list_logs(
    scope: AccessibleScope,
    repos: Repos,
    student_id: Optional[str] = None,
    type: Optional[LogType] = None,
    surah_id: Optional[int] = Query(None, ge=1, le=114),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
):
    if student_id and student_id not in scope:
        raise AccessDenied()
    filters = {k: v for k, v in {"student_id": student_id, "type": type, "surah_id": surah_id}.items() if v}
    logs = [] if scope.is_empty else await repos.memorization_logs.find_many(scope.restrict(filters))
    if start_date:
        logs = [log for log in logs if log["session_date"] >= start_date.isoformat()]
    if end_date:
        logs = [log for log in logs if log["session_date"] <= end_date.isoformat()]
    logs.sort(key=lambda log: (log["session_date"], log.get("created_at") or ""), reverse=True)

    total = len(logs)
    offset = (page - 1) * limit
    return {
        "items": logs[offset : offset + limit],
        "pagination": {"page": page, "limit": limit, "total": total, "total_pages": -(-total // limit)},
    }


@router.get("/logs/{log_id}")
async def get_log(log_id: str, principal: CurrentPrincipal, repos: Repos):
    log = await _get_accessible_log(repos, principal, log_id)
    assessment = await repos.assessments.find_first({"log_id": log_id})
    return {**log, "assessment": assessment}


@router.patch("/logs/{log_id}")
async def update_log(log_id: str, data: MemorizationLogUpdate, principal: TeacherOrAdmin, repos: Repos):
    log = await _get_accessible_log(repos, principal, log_id)
    changes = data.model_dump(mode="json", exclude_unset=True)
    start = changes.get("start_ayah", log["start_ayah"])
    end = changes.get("end_ayah", log["end_ayah"])
    if end < start:
        raise InvalidRequest("End ayah must be greater than or equal to start ayah")
    return await repos.memorization_logs.update(log_id, changes)


@router.delete("/logs/{log_id}")
async def delete_log(log_id: str, principal: TeacherOrAdmin, repos: Repos):
    await _get_accessible_log(repos, principal, log_id)
    for assessment in await repos.assessments.find_many({"log_id": log_id}):
        await repos.assessments.delete(assessment["id"])
    await repos.memorization_logs.delete(log_id)
    return {"id": log_id, "deleted": True}


@router.post("/assessments", status_code=201)
async def create_assessment(data: AssessmentItem, principal: TeacherOrAdmin, repos: Repos):
    await _get_accessible_log(repos, principal, data.log_id)
    if await repos.assessments.find_first({"log_id": data.log_id}):
        raise InvalidRequest("Assessment already exists for this log")
    payload = _scored(data.model_dump(mode="json", exclude={"id"}))
    payload["assessed_by"] = principal.user_id
    return await repos.assessments.create(payload)


@router.patch("/assessments/{assessment_id}")
async def update_assessment(assessment_id: str, data: AssessmentUpdate, principal: TeacherOrAdmin, repos: Repos):
    existing = await repos.assessments.find_first({"id": assessment_id})
    if not existing:
        raise NotFound("Assessment not found")
    await _get_accessible_log(repos, principal, existing["log_id"])
    changes = data.model_dump(mode="json", exclude_unset=True)
    scores = {
        key: changes.get(key, existing[key]) for key in ("tajwid_score", "fashohah_score", "fluency_score")
    }
    return await repos.assessments.update(
        assessment_id, {**changes, **_scored(scores), "assessed_by": principal.user_id}
    )


@router.delete("/assessments/{assessment_id}")
async def delete_assessment(assessment_id: str, principal: TeacherOrAdmin, repos: Repos):
    if not await repos.assessments.delete(assessment_id):
        raise NotFound("Assessment not found")
    return {"id": assessment_id, "deleted": True}
