"""Students visible to the caller: everyone for staff, children for parents, self for students."""
from typing import Optional

from fastapi import APIRouter, Query

from tahfidz.api.deps import AccessibleScope, Repos, StudentOwnerOrStaff
from tahfidz.exceptions import NotFound
from tahfidz.models.user import UserRole, public_user

router = APIRouter()


@router.get("/")
async def list_students(
    scope: AccessibleScope,
    repos: Repos,
    q: Optional[str] = Query(None, description="Search by name or email"),
    include_inactive: bool = False,
):
    if scope.is_empty:
        return {"items": [], "total": 0}
    students = await repos.users.find_many(scope.restrict({"role": UserRole.STUDENT.value}, field="id"))
    if not include_inactive:
        students = [s for s in students if s["is_active"]]
    if q and q.strip():
        needle = q.strip().lower()
        students = [s for s in students if needle in s["name"].lower() or needle in s["email"].lower()]
    students.sort(key=lambda s: s["name"].lower())
    return {"items": [public_user(s) for s in students], "total": len(students)}


@router.get("/{student_id}")
async def get_student(student_id: str, principal: StudentOwnerOrStaff, repos: Repos):
    student = await repos.users.find_first({"id": student_id, "role": UserRole.STUDENT.value})
    if not student:
        raise NotFound("Student not found")
    return public_user(student)


@router.get("/{student_id}/classes")
async def get_student_classes(student_id: str, principal: StudentOwnerOrStaff, repos: Repos):
    enrolments = await repos.class_members.find_many({"student_id": student_id})
    class_ids = [e["class_id"] for e in enrolments]
    if not class_ids:
        return {"items": [], "total": 0}
    classes = await repos.classes.find_many({"id": class_ids})
    return {"items": classes, "total": len(classes)}
