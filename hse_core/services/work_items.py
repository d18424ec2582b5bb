"""Report, action and sub-action lifecycle operations.

Every write asks the access resolver first, mutates the work-item graph only
when allowed, and lets the status aggregator re-derive the parent afterwards.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from hse_core.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hse_core.core.logging import get_logger
from hse_core.core.time import as_naive_utc, normalize_now
from hse_core.models.reports import REPORT_STATUS_TRANSITIONS, Report, ReportStatus
from hse_core.models.work_items import (
    PARENT_KINDS,
    SUB_ACTION_STATUS_TRANSITIONS,
    SUB_ACTION_STATUSES,
    Action,
    SubAction,
    WorkItemStatus,
)
from hse_core.services.access_resolver import (
    can_cancel_sub_action,
    can_create_action,
    can_create_sub_action,
    can_manage,
    can_update_sub_action,
)
from hse_core.services.audit import record_audit
from hse_core.services.status_aggregator import recompute_parent_status
from hse_core.services.zones import get_zone

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from hse_core.schemas.work_items import ActionCreate, ReportCreate, SubActionCreate

logger = get_logger(__name__)


def _tracking_number(now: datetime) -> str:
    return f"HSE-{now:%Y%m%d}-{uuid4().hex[:8].upper()}"


def parse_status(value: str | WorkItemStatus) -> WorkItemStatus:
    """Coerce a sub-action status; `Aborted` is reserved for parents."""
    try:
        status = WorkItemStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid status: {value}") from exc
    if status not in SUB_ACTION_STATUSES:
        raise ValidationError(f"Sub-actions cannot be set to {status.value}")
    return status


async def get_report(session: AsyncSession, report_id: UUID) -> Report:
    report = await Report.objects.by_id(report_id).first(session)
    if report is None:
        raise NotFoundError(f"Report {report_id} not found")
    return report


async def get_action(session: AsyncSession, action_id: UUID) -> Action:
    action = await Action.objects.by_id(action_id).first(session)
    if action is None:
        raise NotFoundError(f"Action {action_id} not found")
    return action


async def get_sub_action(session: AsyncSession, sub_action_id: UUID) -> SubAction:
    sub_action = await SubAction.objects.by_id(sub_action_id).first(session)
    if sub_action is None:
        raise NotFoundError(f"Sub-action {sub_action_id} not found")
    return sub_action


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


async def create_report(
    session: AsyncSession,
    payload: ReportCreate,
    *,
    actor_id: UUID | None = None,
    now: datetime | None = None,
) -> Report:
    """File a report against an active zone."""
    now = normalize_now(now)
    zone = await get_zone(session, payload.zone_id)
    if not zone.is_active:
        raise ConflictError(f"Zone {zone.code} is inactive")
    title = payload.title.strip()
    if not title:
        raise ValidationError("Report title is required")

    report = Report(
        tracking_number=_tracking_number(now),
        title=title,
        description=payload.description,
        report_type=payload.report_type,
        zone_id=zone.id,
        reporter_company_id=payload.reporter_company_id,
        incident_at=as_naive_utc(payload.incident_at) if payload.incident_at else None,
        created_by=actor_id,
        created_at=now,
        updated_at=now,
    )
    session.add(report)
    await session.commit()
    await session.refresh(report)
    logger.info(
        "work_item.report.created",
        extra={"report_id": str(report.id), "zone_id": str(zone.id)},
    )
    return report


async def _transition_report(
    session: AsyncSession,
    report_id: UUID,
    target: ReportStatus,
    *,
    actor_id: UUID,
    now: datetime,
) -> Report:
    report = await get_report(session, report_id)
    if target not in REPORT_STATUS_TRANSITIONS[report.status]:
        raise ConflictError(
            f"Cannot transition report from '{report.status.value}' to '{target.value}'",
        )
    if not await can_manage(session, actor_id, report, now=now):
        raise PermissionDeniedError("You are not responsible for this report's zone")

    previous = report.status
    report.status = target
    if target == ReportStatus.OPENED:
        report.opened_by = actor_id
        report.opened_at = now
    elif target == ReportStatus.CLOSED:
        report.closed_at = now
    report.updated_at = now
    session.add(report)
    await record_audit(
        session,
        actor_id=actor_id,
        action=f"work_item.report.{target.value.lower()}",
        zone_id=report.zone_id,
        target_type="report",
        target_id=report.id,
        payload={"from_status": previous.value, "to_status": target.value},
        commit=False,
    )
    await session.commit()
    await session.refresh(report)
    return report


async def open_report(
    session: AsyncSession,
    report_id: UUID,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> Report:
    return await _transition_report(
        session,
        report_id,
        ReportStatus.OPENED,
        actor_id=actor_id,
        now=normalize_now(now),
    )


async def close_report(
    session: AsyncSession,
    report_id: UUID,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> Report:
    """Close a report; everything beneath it becomes read-only."""
    return await _transition_report(
        session,
        report_id,
        ReportStatus.CLOSED,
        actor_id=actor_id,
        now=normalize_now(now),
    )


# ---------------------------------------------------------------------------
# Actions and sub-actions
# ---------------------------------------------------------------------------


async def create_action(
    session: AsyncSession,
    payload: ActionCreate,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> Action:
    """Create an action or corrective action; it starts as Not Started."""
    now = normalize_now(now)
    if payload.kind not in PARENT_KINDS:
        raise ValidationError(f"Cannot create an action of kind {payload.kind.value}")
    title = payload.title.strip()
    if not title:
        raise ValidationError("Action title is required")
    report = await get_report(session, payload.report_id)
    if not await can_create_action(session, actor_id, report, now=now):
        raise PermissionDeniedError("You are not allowed to add actions to this report")

    action = Action(
        report_id=report.id,
        kind=payload.kind,
        title=title,
        description=payload.description,
        hierarchy=payload.hierarchy,
        priority=payload.priority,
        due_at=as_naive_utc(payload.due_at) if payload.due_at else None,
        created_by=actor_id,
        assigned_to_id=payload.assigned_to_id,
        created_at=now,
        updated_at=now,
    )
    session.add(action)
    await record_audit(
        session,
        actor_id=actor_id,
        action="work_item.action.created",
        zone_id=report.zone_id,
        target_type=action.kind.value,
        target_id=action.id,
        payload={"report_id": str(report.id)},
        commit=False,
    )
    await session.commit()
    await session.refresh(action)
    return action


async def create_sub_action(
    session: AsyncSession,
    payload: SubActionCreate,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> SubAction:
    """Add a sub-action; the parent's status is left untouched."""
    now = normalize_now(now)
    title = payload.title.strip()
    if not title:
        raise ValidationError("Sub-action title is required")
    parent = await get_action(session, payload.action_id)
    if not await can_create_sub_action(session, actor_id, parent, now=now):
        raise PermissionDeniedError("You are not allowed to add sub-actions to this action")

    sub_action = SubAction(
        action_id=parent.id,
        title=title,
        description=payload.description,
        due_at=as_naive_utc(payload.due_at) if payload.due_at else None,
        created_by=actor_id,
        assigned_to_id=payload.assigned_to_id,
        created_at=now,
        updated_at=now,
    )
    session.add(sub_action)
    await session.commit()
    await session.refresh(sub_action)
    logger.info(
        "work_item.sub_action.created",
        extra={"sub_action_id": str(sub_action.id), "action_id": str(parent.id)},
    )
    return sub_action


async def update_sub_action_status(
    session: AsyncSession,
    sub_action_id: UUID,
    new_status: str | WorkItemStatus,
    *,
    actor_id: UUID,
    now: datetime | None = None,
) -> SubAction:
    """Move a sub-action along its state machine and roll the change up."""
    now = normalize_now(now)
    target = parse_status(new_status)
    sub_action = await get_sub_action(session, sub_action_id)
    if target == sub_action.status:
        return sub_action

    if target == WorkItemStatus.CANCELED:
        allowed = await can_cancel_sub_action(session, actor_id, sub_action)
    else:
        allowed = await can_update_sub_action(session, actor_id, sub_action, now=now)
    if not allowed:
        raise PermissionDeniedError("You are not allowed to update this sub-action")
    if target not in SUB_ACTION_STATUS_TRANSITIONS.get(sub_action.status, set()):
        raise ConflictError(
            f"Cannot transition sub-action from '{sub_action.status.value}' to '{target.value}'",
        )

    previous = sub_action.status
    sub_action.status = target
    sub_action.updated_at = now
    session.add(sub_action)
    parent = await get_action(session, sub_action.action_id)
    report = await get_report(session, parent.report_id)
    await record_audit(
        session,
        actor_id=actor_id,
        action="work_item.sub_action.status_changed",
        zone_id=report.zone_id,
        target_type="sub_action",
        target_id=sub_action.id,
        payload={"from_status": previous.value, "to_status": target.value},
        commit=False,
    )
    await recompute_parent_status(session, sub_action.action_id, now=now, commit=False)
    await session.commit()
    await session.refresh(sub_action)
    return sub_action
