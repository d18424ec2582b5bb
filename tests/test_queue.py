# ruff: noqa: INP001
"""Queue helper and zone notification tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from hse_core.core.config import settings
from hse_core.services.notifications import (
    TASK_TYPE,
    ZoneNotification,
    decode_notification_task,
    enqueue_notification,
)
from hse_core.services.notifications.dispatch import flush_queue
from hse_core.services.queue import QueuedTask, dequeue_task, enqueue_task, requeue_if_failed


@pytest.mark.parametrize("attempts", [0, 1, 2])
def test_generic_queue_roundtrip(attempts: int) -> None:
    payload = QueuedTask(
        task_type="generic-task",
        payload={"name": "zone.delegation.created"},
        created_at=datetime.now(UTC),
        attempts=attempts,
    )

    assert enqueue_task(payload, "generic-queue")
    item = dequeue_task("generic-queue")
    assert item is not None
    assert item.task_type == payload.task_type
    assert item.payload == payload.payload
    assert item.attempts == attempts
    assert dequeue_task("generic-queue") is None


def test_blocking_dequeue_returns_none_when_empty() -> None:
    assert dequeue_task("empty-queue", block=True, block_timeout=0.1) is None


@pytest.mark.parametrize("attempts", [0, 1, 2, 3])
def test_generic_requeue_respects_retry_cap(fake_redis, attempts: int) -> None:
    payload = QueuedTask(
        task_type="generic-task",
        payload={"attempt": attempts},
        created_at=datetime.now(UTC),
        attempts=attempts,
    )

    if attempts >= 3:
        assert requeue_if_failed(payload, "generic-queue", max_retries=3) is False
        assert fake_redis.values.get("generic-queue", []) == []
    else:
        assert requeue_if_failed(payload, "generic-queue", max_retries=3) is True
        requeued = dequeue_task("generic-queue")
        assert requeued is not None
        assert requeued.attempts == attempts + 1


def test_dequeue_rejects_malformed_envelope(fake_redis) -> None:
    fake_redis.lpush("generic-queue", json.dumps({"zone_id": str(uuid4())}))
    with pytest.raises(KeyError):
        dequeue_task("generic-queue")


def test_enqueue_failure_is_reported_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    def _down(redis_url: str | None = None) -> object:
        raise ConnectionError("redis unavailable")

    monkeypatch.setattr("hse_core.services.queue._redis_client", _down)
    notification = ZoneNotification(event_type="delegation_created", zone_id=uuid4())
    assert enqueue_notification(notification) is False


def test_notification_roundtrip(fake_redis) -> None:
    zone_id = uuid4()
    targets = [uuid4(), uuid4()]
    notification = ZoneNotification(
        event_type="delegation_ended",
        zone_id=zone_id,
        target_ids=targets,
        payload={"delegation_id": "d-1"},
    )
    assert enqueue_notification(notification) is True

    task = dequeue_task(settings.notification_queue_name)
    assert task is not None
    assert task.task_type == TASK_TYPE
    decoded = decode_notification_task(task)
    assert decoded.zone_id == zone_id
    assert decoded.target_ids == targets
    assert decoded.payload == {"delegation_id": "d-1"}


def test_decode_rejects_foreign_task_type() -> None:
    task = QueuedTask(task_type="other", payload={}, created_at=datetime.now(UTC))
    with pytest.raises(ValueError, match="Unexpected task_type"):
        decode_notification_task(task)


@pytest.mark.asyncio
async def test_flush_queue_dispatches_and_requeues_bad_tasks(fake_redis) -> None:
    enqueue_notification(ZoneNotification(event_type="delegation_created", zone_id=uuid4()))
    bad = QueuedTask(
        task_type=TASK_TYPE,
        payload={"event_type": "broken", "zone_id": "not-a-uuid"},
        created_at=datetime.now(UTC),
        attempts=settings.notification_max_retries,
    )
    enqueue_task(bad, settings.notification_queue_name)

    processed = await flush_queue()

    assert processed == 1
    assert fake_redis.values[settings.notification_queue_name] == []


def test_envelope_stores_created_at_as_naive_utc() -> None:
    aware = datetime(2030, 3, 4, 2, 0, tzinfo=timezone(timedelta(hours=2)))
    task = QueuedTask(task_type=TASK_TYPE, payload={"zone_id": "z-1"}, created_at=aware)

    decoded = QueuedTask.from_json(task.to_json())

    assert decoded.created_at == datetime(2030, 3, 4, 0, 0)
    assert decoded.created_at.tzinfo is None
    assert decoded.retried().attempts == 1
    assert QueuedTask(task_type=TASK_TYPE, payload={}).created_at.tzinfo is None


def test_dequeue_logs_and_raises_on_invalid_json(fake_redis, caplog) -> None:
    fake_redis.lpush("generic-queue", "{not json")
    with pytest.raises(ValueError):
        dequeue_task("generic-queue")
    assert "queue.malformed_envelope" in caplog.text
    assert fake_redis.values["generic-queue"] == []
