# ruff: noqa: INP001
"""Engine URL normalization and the session lifecycle helpers."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from hse_core.db import session as db_session
from hse_core.models.zones import Zone


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("postgresql://u:p@db/hse", "postgresql+psycopg://u:p@db/hse"),
        ("postgresql+psycopg://u:p@db/hse", "postgresql+psycopg://u:p@db/hse"),
        ("postgres://u:p@db/hse", "postgresql+psycopg://u:p@db/hse"),
        ("sqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ("not-a-url", "not-a-url"),
    ],
)
def test_normalize_database_url(raw: str, expected: str) -> None:
    assert db_session._normalize_database_url(raw) == expected


def test_row_locks_are_reported_per_dialect() -> None:
    postgres = create_async_engine("postgresql+psycopg://u:p@db/hse")
    assert db_session.supports_row_locks(postgres) is True
    assert db_session.supports_row_locks(db_session.async_engine) is False
    assert db_session._engine_options("sqlite+aiosqlite:///:memory:") == {}
    assert db_session._engine_options("postgresql+psycopg://u:p@db/hse") == {
        "pool_pre_ping": True,
    }


@pytest.mark.asyncio
async def test_init_db_creates_schema_and_session_rolls_back_open_work() -> None:
    assert db_session.settings.db_auto_migrate is False
    await db_session.init_db()

    sessions = db_session.get_session()
    session = await sessions.__anext__()
    session.add(Zone(name="North", code="N-01"))
    await session.flush()
    assert await Zone.objects.filter_by(code="N-01").first(session) is not None
    await sessions.aclose()

    check = db_session.get_session()
    fresh = await check.__anext__()
    assert await Zone.objects.filter_by(code="N-01").first(fresh) is None
    await check.aclose()
    await db_session.async_engine.dispose()
