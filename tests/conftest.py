# ruff: noqa: INP001
"""Pytest configuration shared across tests."""

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings and the engine are built at import time; pin deterministic values
# before any hse_core module is imported, regardless of shell env.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DELEGATION_MAX_DAYS"] = "0"


class FakeRedis:
    """In-process stand-in for the list commands the queue helpers use."""

    def __init__(self) -> None:
        self.values: dict[str, list[str]] = {}

    def lpush(self, key: str, *values: str) -> None:
        bucket = self.values.setdefault(key, [])
        for value in values:
            bucket.insert(0, value)

    def rpop(self, key: str) -> str | None:
        bucket = self.values.get(key) or []
        if not bucket:
            return None
        return bucket.pop()

    def brpop(self, keys: list[str], timeout: float = 0) -> tuple[str, str] | None:
        del timeout
        for key in keys:
            value = self.rpop(key)
            if value is not None:
                return key, value
        return None


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    fake = FakeRedis()

    def _fake_redis(redis_url: str | None = None) -> FakeRedis:
        del redis_url
        return fake

    monkeypatch.setattr("hse_core.services.queue._redis_client", _fake_redis)
    return fake
