"""Append-only audit log model for zone and work-item actions."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from hse_core.core.time import utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class AuditEntry(QueryModel, table=True):
    """Append-only audit log entry for ownership changes and work-item transitions."""

    __tablename__ = "audit_entries"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    zone_id: UUID | None = Field(default=None, foreign_key="zones.id", index=True)
    actor_id: UUID = Field(index=True)
    action: str = Field(index=True)
    target_type: str = Field(default="")
    target_id: UUID | None = None
    payload: dict[str, object] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
