"""Permanent zone-to-agent responsibility assignments."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Index, text
from sqlmodel import Field

from hse_core.core.time import utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class ZoneResponsibility(QueryModel, table=True):
    """Assignment of an agent as the permanent owner of a zone.

    Records are deactivated, never deleted, so ownership history stays auditable.
    """

    __tablename__ = "zone_responsibilities"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        # At most one active owner per zone.
        Index(
            "uq_zone_responsibilities_active_zone",
            "zone_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    agent_id: UUID = Field(foreign_key="agents.id", index=True)
    zone_id: UUID = Field(foreign_key="zones.id", index=True)
    is_active: bool = Field(default=True, index=True)
    assigned_by: UUID | None = Field(default=None, foreign_key="agents.id")
    assigned_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
