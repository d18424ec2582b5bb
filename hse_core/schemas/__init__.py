"""Public schema exports shared by service consumers."""

from hse_core.schemas.audit import AuditEntryRead
from hse_core.schemas.delegations import DelegationCreate, DelegationRead, DelegationUpdate
from hse_core.schemas.errors import ErrorResponse
from hse_core.schemas.work_items import (
    ActionCreate,
    ActionRead,
    ReportCreate,
    ReportRead,
    SubActionCreate,
    SubActionRead,
)
from hse_core.schemas.zones import ZoneCreate, ZoneRead, ZoneResponsibilityRead, ZoneUpdate

__all__ = [
    "ActionCreate",
    "ActionRead",
    "AuditEntryRead",
    "DelegationCreate",
    "DelegationRead",
    "DelegationUpdate",
    "ErrorResponse",
    "ReportCreate",
    "ReportRead",
    "SubActionCreate",
    "SubActionRead",
    "ZoneCreate",
    "ZoneRead",
    "ZoneResponsibilityRead",
    "ZoneUpdate",
]
