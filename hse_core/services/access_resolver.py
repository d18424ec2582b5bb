"""Zone ownership resolution and work-item authorization predicates.

Every answer is recomputed from the live store and the supplied clock; nothing
is cached between calls. The effective owner of a zone is the active
delegate when a delegation covers `now`, otherwise the permanent owner. A zone
without an active responsibility has no owner at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from hse_core.core.errors import NotFoundError, PermissionDeniedError
from hse_core.core.logging import get_logger
from hse_core.core.time import normalize_now
from hse_core.models.agents import Agent
from hse_core.models.reports import Report
from hse_core.models.work_items import Action, SubAction, WorkItemStatus
from hse_core.models.zone_delegations import ZoneDelegation
from hse_core.models.zone_responsibilities import ZoneResponsibility

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

WorkItem = Report | Action | SubAction

_SUB_ACTION_BLOCKING_PARENT_STATUSES = frozenset(
    {WorkItemStatus.COMPLETED, WorkItemStatus.ABORTED},
)


# ---------------------------------------------------------------------------
# Principal lookup
# ---------------------------------------------------------------------------


async def get_agent(session: AsyncSession, agent_id: UUID) -> Agent:
    """Load an agent or raise NotFoundError."""
    agent = await Agent.objects.by_id(agent_id).first(session)
    if agent is None:
        raise NotFoundError(f"Agent {agent_id} not found")
    return agent


async def require_admin(session: AsyncSession, actor_id: UUID) -> Agent:
    """Load *actor_id* and refuse unless it is an active administrator."""
    actor = await get_agent(session, actor_id)
    if not actor.is_active or not actor.is_admin:
        raise PermissionDeniedError("Only administrators may perform this operation")
    return actor


async def _active_principal(session: AsyncSession, principal_id: UUID) -> Agent | None:
    principal = await Agent.objects.by_id(principal_id).first(session)
    if principal is None or not principal.is_active:
        return None
    return principal


# ---------------------------------------------------------------------------
# Effective ownership
# ---------------------------------------------------------------------------


async def get_active_responsibility(
    session: AsyncSession,
    zone_id: UUID,
) -> ZoneResponsibility | None:
    return await ZoneResponsibility.objects.filter_by(zone_id=zone_id, is_active=True).first(
        session,
    )


async def get_current_delegation(
    session: AsyncSession,
    zone_id: UUID,
    *,
    now: datetime,
) -> ZoneDelegation | None:
    """Return the delegation covering *now* for the zone, if any."""
    return (
        await ZoneDelegation.objects.filter_by(zone_id=zone_id, is_active=True)
        .filter(col(ZoneDelegation.start_at) <= now, col(ZoneDelegation.end_at) > now)
        .order_by(col(ZoneDelegation.start_at))
        .first(session)
    )


async def resolve_owner(
    session: AsyncSession,
    zone_id: UUID,
    *,
    now: datetime | None = None,
) -> UUID | None:
    """Return the agent effectively responsible for *zone_id* at *now*."""
    now = normalize_now(now)
    responsibility = await get_active_responsibility(session, zone_id)
    if responsibility is None:
        return None
    delegation = await get_current_delegation(session, zone_id, now=now)
    if delegation is not None:
        return delegation.to_agent_id
    return responsibility.agent_id


async def is_effective_owner(
    session: AsyncSession,
    principal_id: UUID,
    zone_id: UUID,
    *,
    now: datetime,
) -> bool:
    owner_id = await resolve_owner(session, zone_id, now=now)
    return owner_id is not None and owner_id == principal_id


# ---------------------------------------------------------------------------
# Work-item context
# ---------------------------------------------------------------------------


async def _parent_of(session: AsyncSession, sub_action: SubAction) -> Action:
    parent = await Action.objects.by_id(sub_action.action_id).first(session)
    if parent is None:
        raise NotFoundError(f"Action {sub_action.action_id} not found")
    return parent


async def _report_of(session: AsyncSession, action: Action) -> Report:
    report = await Report.objects.by_id(action.report_id).first(session)
    if report is None:
        raise NotFoundError(f"Report {action.report_id} not found")
    return report


async def _lineage(
    session: AsyncSession,
    item: WorkItem,
) -> tuple[Report, Action | None]:
    """Return the owning report and, below report level, the owning action."""
    if isinstance(item, Report):
        return item, None
    action = await _parent_of(session, item) if isinstance(item, SubAction) else item
    return await _report_of(session, action), action


def _status_gate_open(report: Report, action: Action | None) -> bool:
    if report.is_closed:
        return False
    return action is None or not action.is_aborted


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


async def can_manage(
    session: AsyncSession,
    principal_id: UUID,
    item: WorkItem,
    *,
    now: datetime | None = None,
) -> bool:
    """Whether *principal_id* may modify *item* right now.

    Reports need effective ownership of their zone; actions and sub-actions
    additionally need authorship. Administrators skip both checks but not the
    status gate: nothing under a Closed report or an Aborted action is
    manageable.
    """
    now = normalize_now(now)
    principal = await _active_principal(session, principal_id)
    if principal is None:
        return False
    report, action = await _lineage(session, item)
    if not _status_gate_open(report, action):
        return False
    if principal.is_admin:
        return True
    if not await is_effective_owner(session, principal_id, report.zone_id, now=now):
        return False
    if isinstance(item, Report):
        return True
    return item.created_by == principal_id


async def can_abort(
    session: AsyncSession,
    principal_id: UUID,
    item: WorkItem,
    *,
    now: datetime | None = None,
) -> bool:
    """Whether *principal_id* may abort *item*; only non-terminal actions qualify."""
    if not isinstance(item, Action) or item.is_terminal:
        return False
    now = normalize_now(now)
    principal = await _active_principal(session, principal_id)
    if principal is None:
        return False
    if principal.is_admin:
        return True
    report = await _report_of(session, item)
    return await is_effective_owner(session, principal_id, report.zone_id, now=now)


async def can_create_action(
    session: AsyncSession,
    principal_id: UUID,
    report: Report,
    *,
    now: datetime | None = None,
) -> bool:
    """Whether *principal_id* may add an action or corrective action to *report*."""
    if report.is_closed:
        return False
    now = normalize_now(now)
    principal = await _active_principal(session, principal_id)
    if principal is None:
        return False
    if principal.is_admin:
        return True
    return await is_effective_owner(session, principal_id, report.zone_id, now=now)


async def can_create_sub_action(
    session: AsyncSession,
    principal_id: UUID,
    parent: Action,
    *,
    now: datetime | None = None,
) -> bool:
    """Whether *principal_id* may add a sub-action under *parent*.

    Only the parent's author qualifies, and only while the parent is still
    open for work. Non-admin authors must also be the current effective owner.
    """
    if parent.created_by != principal_id:
        return False
    if parent.status in _SUB_ACTION_BLOCKING_PARENT_STATUSES:
        return False
    now = normalize_now(now)
    principal = await _active_principal(session, principal_id)
    if principal is None:
        return False
    report = await _report_of(session, parent)
    if report.is_closed:
        return False
    if principal.is_admin:
        return True
    return await is_effective_owner(session, principal_id, report.zone_id, now=now)


async def can_cancel_sub_action(
    session: AsyncSession,
    principal_id: UUID,
    sub_action: SubAction,
) -> bool:
    """Admins and the author of the parent action may cancel a sub-action."""
    if sub_action.is_terminal:
        return False
    principal = await _active_principal(session, principal_id)
    if principal is None:
        return False
    parent = await _parent_of(session, sub_action)
    if parent.is_aborted:
        return False
    return principal.is_admin or parent.created_by == principal_id


async def can_update_sub_action(
    session: AsyncSession,
    principal_id: UUID,
    sub_action: SubAction,
    *,
    now: datetime | None = None,
) -> bool:
    """Managers of the parent action and the sub-action's assignee may update it."""
    now = normalize_now(now)
    parent = await _parent_of(session, sub_action)
    if await can_manage(session, principal_id, parent, now=now):
        return True
    if sub_action.assigned_to_id is None or sub_action.assigned_to_id != principal_id:
        return False
    if await _active_principal(session, principal_id) is None:
        return False
    report = await _report_of(session, parent)
    return _status_gate_open(report, parent)
