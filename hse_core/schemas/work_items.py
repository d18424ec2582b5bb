"""Schemas for report, action and sub-action payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel

from hse_core.models.reports import ReportStatus
from hse_core.models.work_items import WorkItemKind, WorkItemStatus

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ReportCreate(SQLModel):
    """Payload for filing an incident report."""

    title: str = Field(min_length=1)
    zone_id: UUID
    description: str = ""
    report_type: str = "incident"
    reporter_company_id: str | None = None
    incident_at: datetime | None = None


class ReportRead(SQLModel):
    """Report payload returned by read endpoints."""

    id: UUID
    tracking_number: str
    title: str
    description: str
    report_type: str
    zone_id: UUID
    status: ReportStatus
    opened_by: UUID | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ActionCreate(SQLModel):
    """Payload for creating an action or corrective action on a report."""

    report_id: UUID
    title: str = Field(min_length=1)
    kind: WorkItemKind = WorkItemKind.ACTION
    description: str = ""
    hierarchy: str = ""
    priority: str = "Medium"
    due_at: datetime | None = None
    assigned_to_id: UUID | None = None


class ActionRead(SQLModel):
    """Action payload returned by read endpoints."""

    id: UUID
    report_id: UUID
    kind: WorkItemKind
    title: str
    description: str
    status: WorkItemStatus
    due_at: datetime | None = None
    created_by: UUID
    assigned_to_id: UUID | None = None
    aborted_by: UUID | None = None
    aborted_at: datetime | None = None
    abort_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class SubActionCreate(SQLModel):
    """Payload for adding a sub-action under an action or corrective action."""

    action_id: UUID
    title: str = Field(min_length=1)
    description: str | None = None
    due_at: datetime | None = None
    assigned_to_id: UUID | None = None


class SubActionRead(SQLModel):
    """Sub-action payload returned by read endpoints."""

    id: UUID
    action_id: UUID
    title: str
    description: str | None = None
    status: WorkItemStatus
    due_at: datetime | None = None
    created_by: UUID
    assigned_to_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
