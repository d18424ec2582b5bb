"""Zone registry model: organizational units of safety responsibility."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from hse_core.core.time import utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Zone(QueryModel, table=True):
    """Organizational or geographic unit that a single agent is responsible for."""

    __tablename__ = "zones"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(index=True)
    code: str = Field(unique=True, index=True)
    description: str = Field(default="")
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
