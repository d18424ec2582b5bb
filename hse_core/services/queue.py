"""Redis list transport for zone notifications.

Producers LPUSH JSON envelopes and the worker RPOPs them, so each list is
FIFO. An envelope whose handler fails is pushed back with its attempt count
bumped until `max_retries` is exceeded, then dropped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, cast

import redis

from hse_core.core.config import settings
from hse_core.core.logging import get_logger
from hse_core.core.time import as_naive_utc, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueuedTask:
    """Envelope stored on the list: a task type tag plus its JSON payload."""

    task_type: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)
    attempts: int = 0

    def to_json(self) -> str:
        envelope = {
            "task_type": self.task_type,
            "payload": self.payload,
            "created_at": as_naive_utc(self.created_at).isoformat(),
            "attempts": self.attempts,
        }
        return json.dumps(envelope, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> QueuedTask:
        envelope: dict[str, Any] = json.loads(raw)
        created_at = envelope.get("created_at")
        return cls(
            task_type=str(envelope["task_type"]),
            payload=dict(envelope["payload"]),
            created_at=datetime.fromisoformat(created_at) if created_at else utcnow(),
            attempts=int(envelope.get("attempts", 0)),
        )

    def retried(self) -> QueuedTask:
        return replace(self, attempts=self.attempts + 1)


def _redis_client(redis_url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(redis_url or settings.notification_redis_url)


def enqueue_task(task: QueuedTask, queue_name: str, *, redis_url: str | None = None) -> bool:
    """Push *task* onto *queue_name*; reports failure instead of raising."""
    try:
        _redis_client(redis_url=redis_url).lpush(queue_name, task.to_json())
    except Exception:
        logger.warning(
            "queue.push_failed",
            extra={"queue_name": queue_name, "task_type": task.task_type},
            exc_info=True,
        )
        return False
    logger.info(
        "queue.pushed",
        extra={"queue_name": queue_name, "task_type": task.task_type, "attempts": task.attempts},
    )
    return True


def _pop(
    client: redis.Redis,
    queue_name: str,
    *,
    block: bool,
    block_timeout: float,
) -> str | bytes | None:
    if not block:
        return cast(str | bytes | None, client.rpop(queue_name))
    popped = cast(
        tuple[bytes | str, bytes | str] | None,
        client.brpop([queue_name], timeout=max(0.0, float(block_timeout))),
    )
    return None if popped is None else popped[1]


def dequeue_task(
    queue_name: str,
    *,
    redis_url: str | None = None,
    block: bool = False,
    block_timeout: float = 0,
) -> QueuedTask | None:
    """Pop the oldest envelope from *queue_name*, or None when it is empty.

    A malformed envelope is logged and the decoding error re-raised; it has
    already left the list.
    """
    raw = _pop(
        _redis_client(redis_url=redis_url),
        queue_name,
        block=block,
        block_timeout=block_timeout,
    )
    if raw is None:
        return None
    try:
        return QueuedTask.from_json(raw)
    except (KeyError, TypeError, ValueError):
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        logger.error("queue.malformed_envelope", extra={"queue_name": queue_name, "raw": text})
        raise


def requeue_if_failed(
    task: QueuedTask,
    queue_name: str,
    *,
    max_retries: int,
    redis_url: str | None = None,
) -> bool:
    """Push a failed envelope back for another attempt; False once retries run out."""
    retry = task.retried()
    if retry.attempts > max_retries:
        logger.warning(
            "queue.retries_exhausted",
            extra={
                "queue_name": queue_name,
                "task_type": task.task_type,
                "attempts": retry.attempts,
            },
        )
        return False
    return enqueue_task(retry, queue_name, redis_url=redis_url)
