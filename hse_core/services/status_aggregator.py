"""Bottom-up status derivation for actions and the abort cascade.

A parent's status follows its sub-actions through an ordered rule list; the
first rule whose predicate matches wins. An explicitly aborted parent keeps
`Aborted` regardless of its children.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlmodel import col

from hse_core.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from hse_core.core.logging import get_logger
from hse_core.core.time import normalize_now
from hse_core.models.reports import Report
from hse_core.models.work_items import Action, SubAction, WorkItemStatus
from hse_core.services.access_resolver import can_abort
from hse_core.services.audit import record_audit
from hse_core.services.notifications import ZoneNotification, enqueue_notification

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusCounts:
    """Number of children in each settable status."""

    not_started: int = 0
    in_progress: int = 0
    completed: int = 0
    canceled: int = 0


def count_statuses(statuses: Iterable[WorkItemStatus]) -> StatusCounts:
    counts = Counter(WorkItemStatus(value) for value in statuses)
    return StatusCounts(
        not_started=counts[WorkItemStatus.NOT_STARTED],
        in_progress=counts[WorkItemStatus.IN_PROGRESS],
        completed=counts[WorkItemStatus.COMPLETED],
        canceled=counts[WorkItemStatus.CANCELED],
    )


StatusRule = tuple[str, Callable[[StatusCounts], bool], WorkItemStatus]

STATUS_RULES: tuple[StatusRule, ...] = (
    (
        "any_in_progress",
        lambda c: c.in_progress > 0,
        WorkItemStatus.IN_PROGRESS,
    ),
    (
        "nothing_started_or_done",
        lambda c: c.in_progress == 0 and c.completed == 0,
        WorkItemStatus.NOT_STARTED,
    ),
    (
        "open_work_beside_closed_work",
        lambda c: (c.not_started > 0 or c.in_progress > 0) and (c.completed > 0 or c.canceled > 0),
        WorkItemStatus.IN_PROGRESS,
    ),
    (
        "all_open_work_completed",
        lambda c: c.not_started == 0 and c.in_progress == 0 and c.completed > 0,
        WorkItemStatus.COMPLETED,
    ),
)
FALLBACK_STATUS = WorkItemStatus.NOT_STARTED


def derive_parent_status(children: Iterable[WorkItemStatus]) -> WorkItemStatus:
    """Derive a parent status from its children's statuses."""
    counts = count_statuses(children)
    for _name, predicate, result in STATUS_RULES:
        if predicate(counts):
            return result
    return FALLBACK_STATUS


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

_PROGRESS_VALUES: dict[WorkItemStatus, float] = {
    WorkItemStatus.NOT_STARTED: 0.0,
    WorkItemStatus.IN_PROGRESS: 0.5,
    WorkItemStatus.COMPLETED: 1.0,
    WorkItemStatus.CANCELED: 0.0,
    WorkItemStatus.ABORTED: 0.0,
}


def _percentage(statuses: list[WorkItemStatus]) -> int:
    if not statuses:
        return 0
    total = sum(_PROGRESS_VALUES[status] for status in statuses)
    return round(total / len(statuses) * 100)


def sub_action_progress(statuses: Iterable[WorkItemStatus]) -> int:
    """Percent complete of a set of sub-actions; canceled ones are left out."""
    return _percentage(
        [WorkItemStatus(s) for s in statuses if WorkItemStatus(s) != WorkItemStatus.CANCELED],
    )


def overall_progress(statuses: Iterable[WorkItemStatus]) -> int:
    """Percent complete across actions; aborted actions count as zero."""
    return _percentage([WorkItemStatus(s) for s in statuses])


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


async def _lock_action(session: AsyncSession, action_id: UUID) -> Action:
    action = await Action.objects.by_id(action_id).for_update().first(session)
    if action is None:
        raise NotFoundError(f"Action {action_id} not found")
    return action


async def recompute_parent_status(
    session: AsyncSession,
    parent_id: UUID,
    *,
    now: datetime | None = None,
    commit: bool = True,
) -> WorkItemStatus:
    """Re-derive and persist the status of action *parent_id*.

    Locks the parent row and reads every child inside the caller's
    transaction. Writes only when the derived value differs, so repeated calls
    are harmless.
    """
    now = normalize_now(now)
    parent = await _lock_action(session, parent_id)
    if parent.is_aborted:
        return WorkItemStatus.ABORTED

    children = await SubAction.objects.filter_by(action_id=parent.id).all(session)
    derived = derive_parent_status(child.status for child in children)
    if derived != parent.status:
        logger.info(
            "work_item.status.recomputed",
            extra={
                "action_id": str(parent.id),
                "from_status": parent.status.value,
                "to_status": derived.value,
            },
        )
        parent.status = derived
        parent.updated_at = now
        session.add(parent)
    if commit:
        await session.commit()
    return derived


async def abort_work_item(
    session: AsyncSession,
    item_id: UUID,
    *,
    actor_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> Action:
    """Abort an action and cancel every sub-action that has not completed.

    The abort, the cascade and the audit entry commit together or not at all.
    """
    now = normalize_now(now)
    action = await _lock_action_or_explain(session, item_id)
    if action.is_terminal:
        raise ConflictError(f"Action is already {action.status.value}")
    if not await can_abort(session, actor_id, action, now=now):
        raise PermissionDeniedError("You are not allowed to abort this action")

    try:
        action.status = WorkItemStatus.ABORTED
        action.aborted_by = actor_id
        action.aborted_at = now
        action.abort_reason = (reason or "").strip() or None
        action.updated_at = now
        session.add(action)

        children = (
            await SubAction.objects.filter_by(action_id=action.id)
            .filter(col(SubAction.status) != WorkItemStatus.COMPLETED)
            .all(session)
        )
        canceled_ids: list[str] = []
        for child in children:
            if child.status == WorkItemStatus.CANCELED:
                continue
            child.status = WorkItemStatus.CANCELED
            child.updated_at = now
            session.add(child)
            canceled_ids.append(str(child.id))

        report = await Report.objects.by_id(action.report_id).first(session)
        zone_id = report.zone_id if report is not None else None
        await record_audit(
            session,
            actor_id=actor_id,
            action="work_item.aborted",
            zone_id=zone_id,
            target_type=action.kind.value,
            target_id=action.id,
            payload={"reason": action.abort_reason, "canceled_sub_actions": canceled_ids},
            commit=False,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(action)

    logger.info(
        "work_item.aborted",
        extra={
            "action_id": str(action.id),
            "actor_id": str(actor_id),
            "canceled_count": len(canceled_ids),
        },
    )
    if zone_id is not None:
        try:
            targets = [action.created_by]
            if action.assigned_to_id is not None and action.assigned_to_id != action.created_by:
                targets.append(action.assigned_to_id)
            enqueue_notification(
                ZoneNotification(
                    event_type="work_item_aborted",
                    zone_id=zone_id,
                    target_ids=targets,
                    payload={"action_id": str(action.id), "reason": action.abort_reason},
                ),
            )
        except Exception:
            logger.warning(
                "work_item.abort.notify_failed",
                extra={"action_id": str(action.id)},
                exc_info=True,
            )
    return action


async def _lock_action_or_explain(session: AsyncSession, item_id: UUID) -> Action:
    action = await Action.objects.by_id(item_id).for_update().first(session)
    if action is not None:
        return action
    if await SubAction.objects.by_id(item_id).first(session) is not None:
        raise PermissionDeniedError("Sub-actions cannot be aborted; cancel them instead")
    if await Report.objects.by_id(item_id).first(session) is not None:
        raise PermissionDeniedError("Reports cannot be aborted")
    raise NotFoundError(f"Action {item_id} not found")
