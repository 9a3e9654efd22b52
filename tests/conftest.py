"""
Pytest configuration and fixtures for all tests.

Repositories are replaced by in-memory implementations so no MongoDB is
needed; the FastAPI app gets them through a dependency override.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DEBUG", "true")

from datetime import datetime
from typing import Any, Optional

import pytest
from beanie import Document
from fastapi.encoders import jsonable_encoder
from fastapi.testclient import TestClient

from tahfidz.api.deps import create_access_token
from tahfidz.main import app
from tahfidz.models import (
    Assessment,
    Attendance,
    ClassMember,
    Exam,
    ExamResult,
    MemorizationLog,
    Report,
    SchoolClass,
    User,
)
from tahfidz.repository import Repositories, get_repositories

_MEMBERSHIP_TYPES = (list, tuple, set, frozenset)


class InMemoryRepository:
    """Repository storing JSON-shaped dicts, with the document's field defaults applied."""

    def __init__(self, document: type[Document]):
        self.document = document
        self.rows: dict[str, dict] = {}
        self.calls: list[tuple[str, Any]] = []
        self.error: Optional[Exception] = None
        # Operations that raise ``error``; all of them when None.
        self.error_ops: Optional[set[str]] = None

    def _defaults(self) -> dict:
        return {
            name: field.get_default(call_default_factory=True)
            for name, field in self.document.model_fields.items()
            if not field.is_required() and name != "revision_id"
        }

    def _record(self, op: str, arg: Any) -> None:
        self.calls.append((op, arg))
        if self.error and (self.error_ops is None or op in self.error_ops):
            raise self.error

    @staticmethod
    def _matches(row: dict, filters: Optional[dict]) -> bool:
        for field, expected in (filters or {}).items():
            value = row.get(field)
            if isinstance(expected, _MEMBERSHIP_TYPES):
                if value not in expected:
                    return False
            elif value != jsonable_encoder(expected):
                return False
        return True

    def add(self, **data) -> dict:
        row = jsonable_encoder({**self._defaults(), **data})
        self.rows[row["id"]] = row
        return dict(row)

    async def find_first(self, filters):
        self._record("find_first", filters)
        for row in self.rows.values():
            if self._matches(row, filters):
                return dict(row)
        return None

    async def find_many(self, filters=None):
        self._record("find_many", filters)
        return [dict(row) for row in self.rows.values() if self._matches(row, filters)]

    async def create(self, data):
        self._record("create", data)
        return self.add(**data)

    async def update(self, record_id, data):
        self._record("update", record_id)
        row = self.rows.get(record_id)
        if row is None:
            return None
        row.update(jsonable_encoder({**data, "updated_at": datetime.utcnow()}))
        return dict(row)

    async def delete(self, record_id):
        self._record("delete", record_id)
        return self.rows.pop(record_id, None) is not None


@pytest.fixture
def repos() -> Repositories:
    return Repositories(
        users=InMemoryRepository(User),
        classes=InMemoryRepository(SchoolClass),
        class_members=InMemoryRepository(ClassMember),
        attendance=InMemoryRepository(Attendance),
        memorization_logs=InMemoryRepository(MemorizationLog),
        assessments=InMemoryRepository(Assessment),
        exams=InMemoryRepository(Exam),
        exam_results=InMemoryRepository(ExamResult),
        reports=InMemoryRepository(Report),
    )


@pytest.fixture
def client(repos):
    app.dependency_overrides[get_repositories] = lambda: repos
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(repos: Repositories, user_id: str, role: str, **extra) -> dict:
    return repos.users.add(
        id=user_id,
        name=extra.pop("name", user_id.title()),
        email=extra.pop("email", f"{user_id}@example.com"),
        hashed_password="not-used",
        role=role,
        **extra,
    )


@pytest.fixture
def people(repos) -> dict[str, dict]:
    """admin, teacher, parent p1 with children c1/c2, parent p2 with child s3."""
    return {
        "admin": make_user(repos, "admin", "admin"),
        "teacher": make_user(repos, "teacher", "teacher"),
        "p1": make_user(repos, "p1", "parent"),
        "p2": make_user(repos, "p2", "parent"),
        "c1": make_user(repos, "c1", "student", parent_id="p1"),
        "c2": make_user(repos, "c2", "student", parent_id="p1"),
        "s3": make_user(repos, "s3", "student", parent_id="p2"),
    }


def auth_headers(user: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user['id'], user['role'])}"}
