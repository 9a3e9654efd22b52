"""Fields shared by every stored document."""
from datetime import datetime
from uuid import uuid4

from beanie import Document
from pydantic import Field


def new_id() -> str:
    return str(uuid4())


class TimestampedDocument(Document):
    """UUID string ids (clients may supply their own when syncing offline data) and timestamps."""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
