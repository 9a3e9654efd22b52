"""Repository contract and its MongoDB (Beanie) implementation.

Handlers and the access layer only ever talk to a ``Repository``. Records are
plain dicts whose values are already canonical (``is_active`` is a bool,
``role`` is one of the ``UserRole`` values), so nothing above this module sees
storage-specific representations.

Filters are equality predicates keyed by field name. A list, tuple, set or
frozenset value matches any of its members.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Protocol

from beanie import Document
from pymongo.errors import PyMongoError

from tahfidz.exceptions import InfrastructureError
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

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Filters = dict[str, Any]

_MEMBERSHIP_TYPES = (list, tuple, set, frozenset)


class Repository(Protocol):
    async def find_first(self, filters: Filters) -> Record | None: ...

    async def find_many(self, filters: Filters | None = None) -> list[Record]: ...

    async def create(self, data: Record) -> Record: ...

    async def update(self, record_id: str, data: Record) -> Record | None: ...

    async def delete(self, record_id: str) -> bool: ...


def to_mongo_query(filters: Filters | None) -> dict[str, Any]:
    query: dict[str, Any] = {}
    for field, value in (filters or {}).items():
        key = "_id" if field == "id" else field
        if isinstance(value, _MEMBERSHIP_TYPES):
            query[key] = {"$in": list(value)}
        else:
            query[key] = value
    return query


class BeanieRepository:
    """Repository over a single Beanie document class."""

    def __init__(self, document: type[Document]):
        self.document = document

    @property
    def name(self) -> str:
        return self.document.Settings.name

    def _to_record(self, doc: Document) -> Record:
        return doc.model_dump(mode="json", exclude={"revision_id"})

    async def find_first(self, filters: Filters) -> Record | None:
        try:
            doc = await self.document.find_one(to_mongo_query(filters))
        except PyMongoError as e:
            logger.exception("find_first on %s failed", self.name)
            raise InfrastructureError(f"Failed to read {self.name}") from e
        return self._to_record(doc) if doc else None

    async def find_many(self, filters: Filters | None = None) -> list[Record]:
        try:
            docs = await self.document.find(to_mongo_query(filters)).to_list()
        except PyMongoError as e:
            logger.exception("find_many on %s failed", self.name)
            raise InfrastructureError(f"Failed to read {self.name}") from e
        return [self._to_record(d) for d in docs]

    async def create(self, data: Record) -> Record:
        doc = self.document(**data)
        try:
            await doc.insert()
        except PyMongoError as e:
            logger.exception("insert into %s failed", self.name)
            raise InfrastructureError(f"Failed to write {self.name}") from e
        return self._to_record(doc)

    async def update(self, record_id: str, data: Record) -> Record | None:
        try:
            doc = await self.document.get(record_id)
            if not doc:
                return None
            for field, value in data.items():
                setattr(doc, field, value)
            doc.updated_at = datetime.utcnow()
            await doc.save()
        except PyMongoError as e:
            logger.exception("update of %s/%s failed", self.name, record_id)
            raise InfrastructureError(f"Failed to write {self.name}") from e
        return self._to_record(doc)

    async def delete(self, record_id: str) -> bool:
        try:
            doc = await self.document.get(record_id)
            if not doc:
                return False
            await doc.delete()
        except PyMongoError as e:
            logger.exception("delete of %s/%s failed", self.name, record_id)
            raise InfrastructureError(f"Failed to write {self.name}") from e
        return True


class Repositories:
    """One repository per stored entity."""

    def __init__(
        self,
        users: Repository,
        classes: Repository,
        class_members: Repository,
        attendance: Repository,
        memorization_logs: Repository,
        assessments: Repository,
        exams: Repository,
        exam_results: Repository,
        reports: Repository,
    ):
        self.users = users
        self.classes = classes
        self.class_members = class_members
        self.attendance = attendance
        self.memorization_logs = memorization_logs
        self.assessments = assessments
        self.exams = exams
        self.exam_results = exam_results
        self.reports = reports


_repositories: Repositories | None = None


def get_repositories() -> Repositories:
    """FastAPI dependency returning the MongoDB-backed repositories."""
    global _repositories
    if _repositories is None:
        _repositories = Repositories(
            users=BeanieRepository(User),
            classes=BeanieRepository(SchoolClass),
            class_members=BeanieRepository(ClassMember),
            attendance=BeanieRepository(Attendance),
            memorization_logs=BeanieRepository(MemorizationLog),
            assessments=BeanieRepository(Assessment),
            exams=BeanieRepository(Exam),
            exam_results=BeanieRepository(ExamResult),
            reports=BeanieRepository(Report),
        )
    return _repositories
