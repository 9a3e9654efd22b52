"""Classes (halaqah) and their student memberships."""
import logging

from fastapi import APIRouter

from tahfidz.api.deps import AccessibleScope, AdminOnly, CurrentPrincipal, Repos, TeacherOrAdmin
from tahfidz.exceptions import InvalidRequest, NotFound
from tahfidz.models.school_class import ClassCreate, ClassMemberCreate, ClassTransferRequest, ClassUpdate
from tahfidz.models.user import UserRole, user_summary

logger = logging.getLogger(__name__)

router = APIRouter()


async def _with_details(repos, cls: dict) -> dict:
    teacher = await repos.users.find_first({"id": cls["teacher_id"]}) if cls.get("teacher_id") else None
    members = await repos.class_members.find_many({"class_id": cls["id"]})
    return {**cls, "teacher": user_summary(teacher), "member_count": len(members)}


async def _validate_teacher(repos, teacher_id: str | None) -> None:
    if not teacher_id:
        return
    teacher = await repos.users.find_first({"id": teacher_id})
    if not teacher or teacher["role"] != UserRole.TEACHER:
        raise InvalidRequest("Invalid teacher ID")


@router.get("/")
async def list_classes(principal: CurrentPrincipal, scope: AccessibleScope, repos: Repos):
    """Admins see every class, teachers the classes they lead, parents and students their enrolments."""
    if principal.role == UserRole.ADMIN:
        classes = await repos.classes.find_many()
    elif principal.role == UserRole.TEACHER:
        classes = await repos.classes.find_many({"teacher_id": principal.user_id})
    elif scope.is_empty:
        classes = []
    else:
        enrolments = await repos.class_members.find_many(scope.restrict())
        class_ids = sorted({e["class_id"] for e in enrolments})
        classes = await repos.classes.find_many({"id": class_ids}) if class_ids else []

    items = [await _with_details(repos, c) for c in classes]
    items.sort(key=lambda c: c.get("created_at") or "", reverse=True)
    return {"items": items, "total": len(items)}


@router.post("/", status_code=201)
async def create_class(data: ClassCreate, admin: AdminOnly, repos: Repos):
    await _validate_teacher(repos, data.teacher_id)
    return await repos.classes.create({**data.model_dump(mode="json"), "is_active": True})


@router.get("/{class_id}")
async def get_class(class_id: str, scope: AccessibleScope, repos: Repos):
    cls = await repos.classes.find_first({"id": class_id})
    if not cls:
        raise NotFound("Class not found")
    members = scope.filter(await repos.class_members.find_many({"class_id": class_id}))
    detailed = []
    for member in members:
        student = await repos.users.find_first({"id": member["student_id"]})
        detailed.append({**member, "student": user_summary(student)})
    result = await _with_details(repos, cls)
    result["members"] = detailed
    return result


@router.patch("/{class_id}")
async def update_class(class_id: str, data: ClassUpdate, admin: AdminOnly, repos: Repos):
    changes = data.model_dump(mode="json", exclude_unset=True)
    if "teacher_id" in changes:
        await _validate_teacher(repos, changes["teacher_id"])
    cls = await repos.classes.update(class_id, changes)
    if not cls:
        raise NotFound("Class not found")
    return cls


@router.delete("/{class_id}")
async def delete_class(class_id: str, admin: AdminOnly, repos: Repos):
    if not await repos.classes.delete(class_id):
        raise NotFound("Class not found")
    for member in await repos.class_members.find_many({"class_id": class_id}):
        await repos.class_members.delete(member["id"])
    return {"id": class_id, "deleted": True}


@router.post("/{class_id}/members", status_code=201)
async def add_member(class_id: str, data: ClassMemberCreate, principal: TeacherOrAdmin, repos: Repos):
    if not await repos.classes.find_first({"id": class_id}):
        raise NotFound("Class not found")
    student = await repos.users.find_first({"id": data.student_id})
    if not student or student["role"] != UserRole.STUDENT:
        raise InvalidRequest("Invalid student ID")
    if await repos.class_members.find_first({"class_id": class_id, "student_id": data.student_id}):
        raise InvalidRequest("Student is already a member of this class")
    return await repos.class_members.create({"class_id": class_id, "student_id": data.student_id})


@router.delete("/{class_id}/members/{student_id}")
async def remove_member(class_id: str, student_id: str, principal: TeacherOrAdmin, repos: Repos):
    member = await repos.class_members.find_first({"class_id": class_id, "student_id": student_id})
    if not member:
        raise NotFound("Member not found")
    await repos.class_members.delete(member["id"])
    return {"class_id": class_id, "student_id": student_id, "deleted": True}


@router.post("/{class_id}/transfer")
async def transfer_student(class_id: str, data: ClassTransferRequest, principal: TeacherOrAdmin, repos: Repos):
    """Move a student from this class to ``to_class_id``."""
    source = await repos.classes.find_first({"id": class_id})
    if not source:
        raise NotFound("Source class not found")
    target = await repos.classes.find_first({"id": data.to_class_id})
    if not target:
        raise NotFound("Destination class not found")
    member = await repos.class_members.find_first({"class_id": class_id, "student_id": data.student_id})
    if not member:
        raise InvalidRequest("Student is not a member of the source class")

    await repos.class_members.delete(member["id"])
    if not await repos.class_members.find_first({"class_id": data.to_class_id, "student_id": data.student_id}):
        await repos.class_members.create({"class_id": data.to_class_id, "student_id": data.student_id})
    logger.info(
        "User %s moved student %s from %s to %s", principal.user_id, data.student_id, class_id, data.to_class_id
    )
    return {
        "message": f"Student transferred from {source['name']} to {target['name']}",
        "student_id": data.student_id,
        "from_class_id": class_id,
        "to_class_id": data.to_class_id,
    }


@router.post("/cleanup-inactive")
async def cleanup_inactive_members(admin: AdminOnly, repos: Repos):
    """Drop the memberships of deactivated or deleted students."""
    removed = 0
    for member in await repos.class_members.find_many():
        student = await repos.users.find_first({"id": member["student_id"]})
        if not student or not student["is_active"]:
            await repos.class_members.delete(member["id"])
            removed += 1
    logger.info("Removed %d inactive class memberships", removed)
    return {"message": f"Removed {removed} inactive memberships", "removed_count": removed}
