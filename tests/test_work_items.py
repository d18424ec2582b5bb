# ruff: noqa: INP001
"""Integration tests for work-item creation, status roll-up and the abort cascade."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from hse_core.core.config import settings
from hse_core.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from hse_core.models.agents import Agent, AgentRole
from hse_core.models.audit_entries import AuditEntry
from hse_core.models.reports import ReportStatus
from hse_core.models.work_items import Action, SubAction, WorkItemKind, WorkItemStatus
from hse_core.models.zone_responsibilities import ZoneResponsibility
from hse_core.models.zones import Zone
from hse_core.schemas.work_items import ActionCreate, ReportCreate, SubActionCreate
from hse_core.services.audit import list_audit_entries
from hse_core.services.status_aggregator import abort_work_item, recompute_parent_status
from hse_core.services.work_items import (
    close_report,
    create_action,
    create_report,
    create_sub_action,
    open_report,
    update_sub_action_status,
)

NOW = datetime(2030, 3, 4, 9, 0, 0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


async def _make_session(engine: AsyncEngine) -> AsyncSession:
    return AsyncSession(engine, expire_on_commit=False)


async def _seed(session: AsyncSession) -> tuple[Agent, Agent, Agent, Zone]:
    """Admin, owner X of zone North, and a field worker."""
    admin = Agent(name="Admin", role=AgentRole.ADMIN)
    owner = Agent(name="Agent X", role=AgentRole.HSE)
    worker = Agent(name="Worker", role=AgentRole.PROFILE)
    zone = Zone(name="North", code="N-01")
    session.add_all([admin, owner, worker, zone])
    await session.flush()
    session.add(ZoneResponsibility(agent_id=owner.id, zone_id=zone.id))
    await session.commit()
    return admin, owner, worker, zone


async def _action_with_children(
    session: AsyncSession,
    owner: Agent,
    zone: Zone,
    statuses: list[WorkItemStatus],
) -> tuple[Action, list[SubAction]]:
    report = await create_report(session, ReportCreate(title="Spill", zone_id=zone.id), now=NOW)
    action = await create_action(
        session,
        ActionCreate(report_id=report.id, title="Contain", kind=WorkItemKind.CORRECTIVE_ACTION),
        actor_id=owner.id,
        now=NOW,
    )
    children: list[SubAction] = []
    for index, status in enumerate(statuses):
        child = SubAction(
            action_id=action.id,
            title=f"Step {index}",
            status=status,
            created_by=owner.id,
        )
        session.add(child)
        children.append(child)
    await session.commit()
    return action, children


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_report_lifecycle() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, worker, zone = await _seed(session)
            report = await create_report(
                session,
                ReportCreate(title="Near miss", zone_id=zone.id),
                now=NOW,
            )
            assert report.status == ReportStatus.UNOPENED
            assert report.tracking_number.startswith("HSE-20300304-")

            with pytest.raises(PermissionDeniedError):
                await open_report(session, report.id, actor_id=worker.id, now=NOW)

            opened = await open_report(session, report.id, actor_id=owner.id, now=NOW)
            assert opened.status == ReportStatus.OPENED
            assert opened.opened_by == owner.id

            with pytest.raises(ConflictError):
                await open_report(session, report.id, actor_id=owner.id, now=NOW)

            closed = await close_report(session, report.id, actor_id=owner.id, now=NOW)
            assert closed.status == ReportStatus.CLOSED
            assert closed.closed_at == NOW

            with pytest.raises(PermissionDeniedError):
                await create_action(
                    session,
                    ActionCreate(report_id=report.id, title="Too late"),
                    actor_id=owner.id,
                    now=NOW,
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_report_requires_active_zone() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            await _seed(session)
            closed_zone = Zone(name="Old", code="OLD", is_active=False)
            session.add(closed_zone)
            await session.commit()
            with pytest.raises(ConflictError):
                await create_report(
                    session, ReportCreate(title="x", zone_id=closed_zone.id), now=NOW
                )
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_action_rejects_leaf_kinds() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, _, zone = await _seed(session)
            report = await create_report(session, ReportCreate(title="r", zone_id=zone.id), now=NOW)
            with pytest.raises(ValidationError):
                await create_action(
                    session,
                    ActionCreate(report_id=report.id, title="bad", kind=WorkItemKind.SUB_ACTION),
                    actor_id=owner.id,
                    now=NOW,
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_creating_sub_action_leaves_parent_status_alone() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, worker, zone = await _seed(session)
            action, _ = await _action_with_children(
                session, owner, zone, [WorkItemStatus.COMPLETED]
            )
            assert action.status == WorkItemStatus.NOT_STARTED

            sub_action = await create_sub_action(
                session,
                SubActionCreate(action_id=action.id, title="Inspect", assigned_to_id=worker.id),
                actor_id=owner.id,
                now=NOW,
            )
            assert sub_action.status == WorkItemStatus.NOT_STARTED
            refreshed = await Action.objects.by_id(action.id).first(session)
            assert refreshed is not None
            assert refreshed.status == WorkItemStatus.NOT_STARTED

            with pytest.raises(PermissionDeniedError):
                await create_sub_action(
                    session,
                    SubActionCreate(action_id=action.id, title="Sneaky"),
                    actor_id=worker.id,
                    now=NOW,
                )
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Roll-up
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_recompute_mixed_open_and_closed_children_is_in_progress() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, _, zone = await _seed(session)
            action, _ = await _action_with_children(
                session,
                owner,
                zone,
                [WorkItemStatus.NOT_STARTED, WorkItemStatus.COMPLETED, WorkItemStatus.CANCELED],
            )
            assert await recompute_parent_status(session, action.id, now=NOW) == (
                WorkItemStatus.IN_PROGRESS
            )
            stamped = action.updated_at
            # Second pass changes nothing.
            later = NOW + timedelta(hours=1)
            assert await recompute_parent_status(session, action.id, now=later) == (
                WorkItemStatus.IN_PROGRESS
            )
            assert action.updated_at == stamped
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_recompute_completed_and_canceled_children_is_completed() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, _, zone = await _seed(session)
            action, _ = await _action_with_children(
                session, owner, zone, [WorkItemStatus.COMPLETED, WorkItemStatus.CANCELED]
            )
            assert await recompute_parent_status(session, action.id, now=NOW) == (
                WorkItemStatus.COMPLETED
            )
            stored = await Action.objects.by_id(action.id).first(session)
            assert stored is not None
            assert stored.status == WorkItemStatus.COMPLETED
            assert stored.updated_at == NOW

            with pytest.raises(NotFoundError):
                await recompute_parent_status(session, zone.id, now=NOW)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_sub_action_updates_roll_up_to_parent() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, worker, zone = await _seed(session)
            action, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.NOT_STARTED, WorkItemStatus.NOT_STARTED]
            )
            first, second = children
            first.assigned_to_id = worker.id
            session.add(first)
            await session.commit()

            await update_sub_action_status(
                session, first.id, "In Progress", actor_id=worker.id, now=NOW
            )
            assert action.status == WorkItemStatus.IN_PROGRESS

            await update_sub_action_status(
                session, first.id, WorkItemStatus.COMPLETED, actor_id=worker.id, now=NOW
            )
            assert action.status == WorkItemStatus.IN_PROGRESS

            await update_sub_action_status(
                session, second.id, WorkItemStatus.CANCELED, actor_id=owner.id, now=NOW
            )
            assert action.status == WorkItemStatus.COMPLETED

            entries = await AuditEntry.objects.filter_by(
                action="work_item.sub_action.status_changed",
            ).all(session)
            assert len(entries) == 3
            assert {entry.zone_id for entry in entries} == {zone.id}
            zone_history = await list_audit_entries(session, zone_id=zone.id)
            assert sum(
                entry.action == "work_item.sub_action.status_changed" for entry in zone_history
            ) == 3
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_sub_action_status_validation() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, worker, zone = await _seed(session)
            _, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.COMPLETED, WorkItemStatus.NOT_STARTED]
            )
            done, open_child = children

            with pytest.raises(ValidationError):
                await update_sub_action_status(
                    session, open_child.id, "Aborted", actor_id=owner.id, now=NOW
                )
            with pytest.raises(ValidationError):
                await update_sub_action_status(
                    session, open_child.id, "Paused", actor_id=owner.id, now=NOW
                )
            with pytest.raises(ConflictError):
                await update_sub_action_status(
                    session, done.id, "In Progress", actor_id=owner.id, now=NOW
                )
            # Unassigned worker may neither progress nor cancel.
            with pytest.raises(PermissionDeniedError):
                await update_sub_action_status(
                    session, open_child.id, "In Progress", actor_id=worker.id, now=NOW
                )
            with pytest.raises(NotFoundError):
                await update_sub_action_status(
                    session, zone.id, "In Progress", actor_id=owner.id, now=NOW
                )
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Abort cascade
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_abort_cancels_unfinished_children_only(fake_redis) -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, _, zone = await _seed(session)
            action, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.IN_PROGRESS, WorkItemStatus.COMPLETED]
            )
            running, done = children

            aborted = await abort_work_item(
                session, action.id, actor_id=owner.id, reason=" Obsolete ", now=NOW
            )
            assert aborted.status == WorkItemStatus.ABORTED
            assert aborted.aborted_by == owner.id
            assert aborted.aborted_at == NOW
            assert aborted.abort_reason == "Obsolete"

            stored = {
                child.id: child.status
                for child in await SubAction.objects.filter_by(action_id=action.id).all(session)
            }
            assert stored[running.id] == WorkItemStatus.CANCELED
            assert stored[done.id] == WorkItemStatus.COMPLETED

            entry = await AuditEntry.objects.filter_by(action="work_item.aborted").first(session)
            assert entry is not None
            assert entry.zone_id == zone.id
            assert entry.payload == {"reason": "Obsolete", "canceled_sub_actions": [str(running.id)]}

            queued = [
                json.loads(raw) for raw in fake_redis.values[settings.notification_queue_name]
            ]
            assert [task["payload"]["event_type"] for task in queued] == ["work_item_aborted"]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_abort_is_terminal_and_monotonic() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            admin, owner, _, zone = await _seed(session)
            action, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.NOT_STARTED]
            )
            await abort_work_item(session, action.id, actor_id=owner.id, now=NOW)

            with pytest.raises(ConflictError):
                await abort_work_item(session, action.id, actor_id=admin.id, now=NOW)

            # A child forced back to Completed cannot move the parent off Aborted.
            children[0].status = WorkItemStatus.COMPLETED
            session.add(children[0])
            assert await recompute_parent_status(session, action.id, now=NOW) == (
                WorkItemStatus.ABORTED
            )
            stored = await Action.objects.by_id(action.id).first(session)
            assert stored is not None
            assert stored.status == WorkItemStatus.ABORTED

            with pytest.raises(PermissionDeniedError):
                await create_sub_action(
                    session,
                    SubActionCreate(action_id=action.id, title="After abort"),
                    actor_id=owner.id,
                    now=NOW,
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_abort_permission_and_lookup_errors() -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, worker, zone = await _seed(session)
            action, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.NOT_STARTED]
            )
            with pytest.raises(PermissionDeniedError):
                await abort_work_item(session, action.id, actor_id=worker.id, now=NOW)
            with pytest.raises(PermissionDeniedError):
                await abort_work_item(session, children[0].id, actor_id=owner.id, now=NOW)
            with pytest.raises(PermissionDeniedError):
                await abort_work_item(session, action.report_id, actor_id=owner.id, now=NOW)
            with pytest.raises(NotFoundError):
                await abort_work_item(session, zone.id, actor_id=owner.id, now=NOW)

            stored = await Action.objects.by_id(action.id).first(session)
            assert stored is not None
            assert stored.status == WorkItemStatus.NOT_STARTED
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_abort_rolls_back_when_cascade_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = await _make_engine()
    try:
        async with await _make_session(engine) as session:
            _, owner, _, zone = await _seed(session)
            action, children = await _action_with_children(
                session, owner, zone, [WorkItemStatus.IN_PROGRESS]
            )
            action_id = action.id
            child_id = children[0].id

            async def _boom(*args: object, **kwargs: object) -> None:
                raise RuntimeError("audit store down")

            monkeypatch.setattr("hse_core.services.status_aggregator.record_audit", _boom)
            with pytest.raises(RuntimeError):
                await abort_work_item(session, action_id, actor_id=owner.id, now=NOW)

        async with await _make_session(engine) as fresh:
            stored = await Action.objects.by_id(action_id).first(fresh)
            child = await SubAction.objects.by_id(child_id).first(fresh)
            assert stored is not None
            assert child is not None
            assert stored.status == WorkItemStatus.NOT_STARTED
            assert child.status == WorkItemStatus.IN_PROGRESS
    finally:
        await engine.dispose()
