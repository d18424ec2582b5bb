# ruff: noqa: INP001
"""Model defaults and derived properties."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

from hse_core.models.agents import Agent, AgentRole
from hse_core.models.reports import REPORT_STATUS_TRANSITIONS, Report, ReportStatus
from hse_core.models.work_items import (
    PARENT_KINDS,
    SUB_ACTION_STATUS_TRANSITIONS,
    SUB_ACTION_STATUSES,
    Action,
    SubAction,
    WorkItemKind,
    WorkItemStatus,
)
from hse_core.models.zone_delegations import ZoneDelegation

NOW = datetime(2030, 3, 4, 9, 0, 0)


def test_agent_role_helpers() -> None:
    assert Agent(name="a", role=AgentRole.ADMIN).is_admin is True
    assert Agent(name="h").can_hold_zones is True
    assert Agent(name="p", role=AgentRole.PROFILE).can_hold_zones is False


def test_work_item_defaults() -> None:
    action = Action(report_id=uuid4(), title="t", created_by=uuid4())
    assert action.kind == WorkItemKind.ACTION
    assert action.status == WorkItemStatus.NOT_STARTED
    assert action.is_terminal is False
    assert WorkItemKind.SUB_ACTION not in PARENT_KINDS


def test_sub_actions_never_abort_and_terminals_have_no_exits() -> None:
    assert WorkItemStatus.ABORTED not in SUB_ACTION_STATUSES
    for status in (WorkItemStatus.COMPLETED, WorkItemStatus.CANCELED):
        assert SUB_ACTION_STATUS_TRANSITIONS[status] == set()
    assert REPORT_STATUS_TRANSITIONS[ReportStatus.CLOSED] == set()


def test_overdue_ignores_terminal_items() -> None:
    sub_action = SubAction(
        action_id=uuid4(),
        title="t",
        created_by=uuid4(),
        due_at=NOW - timedelta(days=1),
    )
    assert sub_action.is_overdue(NOW) is True
    sub_action.status = WorkItemStatus.COMPLETED
    assert sub_action.is_overdue(NOW) is False

    action = Action(report_id=uuid4(), title="t", created_by=uuid4())
    assert action.is_overdue(NOW) is False
    action.due_at = NOW
    assert action.is_overdue(NOW) is False
    assert action.is_overdue(NOW + timedelta(seconds=1)) is True


def test_report_defaults() -> None:
    report = Report(tracking_number="HSE-1", title="t", zone_id=uuid4())
    assert report.status == ReportStatus.UNOPENED
    assert report.is_closed is False


def test_delegation_overlap_is_half_open() -> None:
    delegation = ZoneDelegation(
        zone_id=uuid4(),
        from_agent_id=uuid4(),
        to_agent_id=uuid4(),
        start_at=NOW,
        end_at=NOW + timedelta(days=2),
        created_by=uuid4(),
    )
    assert delegation.overlaps(NOW + timedelta(days=1), NOW + timedelta(days=3)) is True
    assert delegation.overlaps(NOW + timedelta(days=2), NOW + timedelta(days=3)) is False
    assert delegation.overlaps(NOW - timedelta(days=1), NOW) is False
