"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from hse_core.models.agents import Agent, AgentRole
from hse_core.models.audit_entries import AuditEntry
from hse_core.models.reports import Report, ReportStatus
from hse_core.models.work_items import Action, SubAction, WorkItemKind, WorkItemStatus
from hse_core.models.zone_delegations import DelegationState, ZoneDelegation
from hse_core.models.zone_responsibilities import ZoneResponsibility
from hse_core.models.zones import Zone

__all__ = [
    "Action",
    "Agent",
    "AgentRole",
    "AuditEntry",
    "DelegationState",
    "Report",
    "ReportStatus",
    "SubAction",
    "WorkItemKind",
    "WorkItemStatus",
    "Zone",
    "ZoneDelegation",
    "ZoneResponsibility",
]
