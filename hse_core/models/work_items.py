"""Actions, corrective actions and sub-actions hanging off a report.

Actions and corrective actions share one table, told apart by `kind`; each
owns zero or more sub-actions whose statuses roll up into the parent.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from hse_core.core.time import as_naive_utc, utcnow
from hse_core.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class WorkItemKind(str, Enum):
    """Discriminator for every node of the report tree."""

    REPORT = "report"
    ACTION = "action"
    CORRECTIVE_ACTION = "corrective_action"
    SUB_ACTION = "sub_action"


PARENT_KINDS = frozenset({WorkItemKind.ACTION, WorkItemKind.CORRECTIVE_ACTION})


class WorkItemStatus(str, Enum):
    """Status shared by actions, corrective actions and sub-actions."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELED = "Canceled"
    ABORTED = "Aborted"


TERMINAL_STATUSES = frozenset(
    {WorkItemStatus.COMPLETED, WorkItemStatus.CANCELED, WorkItemStatus.ABORTED},
)
SUB_ACTION_STATUSES = frozenset(WorkItemStatus) - {WorkItemStatus.ABORTED}
SUB_ACTION_STATUS_TRANSITIONS: dict[WorkItemStatus, set[WorkItemStatus]] = {
    WorkItemStatus.NOT_STARTED: {
        WorkItemStatus.IN_PROGRESS,
        WorkItemStatus.COMPLETED,
        WorkItemStatus.CANCELED,
    },
    WorkItemStatus.IN_PROGRESS: {WorkItemStatus.COMPLETED, WorkItemStatus.CANCELED},
    WorkItemStatus.COMPLETED: set(),
    WorkItemStatus.CANCELED: set(),
}


class Action(QueryModel, table=True):
    """Action or corrective action on a report; status derives from sub-actions."""

    __tablename__ = "actions"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    report_id: UUID = Field(foreign_key="reports.id", index=True)
    kind: WorkItemKind = Field(default=WorkItemKind.ACTION, index=True)
    title: str
    description: str = Field(default="")
    hierarchy: str = Field(default="")
    priority: str = Field(default="Medium")
    due_at: datetime | None = None
    status: WorkItemStatus = Field(default=WorkItemStatus.NOT_STARTED, index=True)
    created_by: UUID = Field(foreign_key="agents.id", index=True)
    assigned_to_id: UUID | None = Field(default=None, foreign_key="agents.id", index=True)

    aborted_by: UUID | None = Field(default=None, foreign_key="agents.id")
    aborted_at: datetime | None = None
    abort_reason: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_aborted(self) -> bool:
        return self.status == WorkItemStatus.ABORTED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.due_at is not None
            and self.due_at < as_naive_utc(now)
            and not self.is_terminal
        )


class SubAction(QueryModel, table=True):
    """Leaf work item whose status is set directly."""

    __tablename__ = "sub_actions"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    action_id: UUID = Field(foreign_key="actions.id", index=True)
    title: str
    description: str | None = None
    status: WorkItemStatus = Field(default=WorkItemStatus.NOT_STARTED, index=True)
    due_at: datetime | None = None
    created_by: UUID = Field(foreign_key="agents.id", index=True)
    assigned_to_id: UUID | None = Field(default=None, foreign_key="agents.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.due_at is not None
            and self.due_at < as_naive_utc(now)
            and not self.is_terminal
        )
