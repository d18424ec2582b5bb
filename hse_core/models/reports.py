"""Incident report model: the root of the work-item tree."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from hse_core.core.time import utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class ReportStatus(str, Enum):
    """Report lifecycle: Unopened -> Opened -> Closed."""

    UNOPENED = "Unopened"
    OPENED = "Opened"
    CLOSED = "Closed"


REPORT_STATUS_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.UNOPENED: {ReportStatus.OPENED, ReportStatus.CLOSED},
    ReportStatus.OPENED: {ReportStatus.CLOSED},
    ReportStatus.CLOSED: set(),
}


class Report(QueryModel, table=True):
    """Safety incident report filed against a zone."""

    __tablename__ = "reports"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tracking_number: str = Field(unique=True, index=True)
    title: str
    description: str = Field(default="")
    report_type: str = Field(default="incident", index=True)
    zone_id: UUID = Field(foreign_key="zones.id", index=True)
    reporter_company_id: str | None = None
    incident_at: datetime | None = None
    status: ReportStatus = Field(default=ReportStatus.UNOPENED, index=True)
    created_by: UUID | None = Field(default=None, foreign_key="agents.id", index=True)
    opened_by: UUID | None = Field(default=None, foreign_key="agents.id")
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_closed(self) -> bool:
        return self.status == ReportStatus.CLOSED
