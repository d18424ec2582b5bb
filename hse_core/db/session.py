"""Async engine and session wiring for the zone store.

Per-zone invariants (a single active owner, non-overlapping delegations) are
serialized by locking the zone row with `SELECT ... FOR UPDATE` inside the
writing transaction. SQLite ignores row locks, so it only suits single-writer
use such as the test suite.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from hse_core import models as _models
from hse_core.core.config import settings
from hse_core.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger(__name__)

# Every table module must be imported before create_all or alembic run.
_MODEL_REGISTRY = _models

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
MIGRATION_VERSIONS = PROJECT_ROOT / "migrations" / "versions"

_ASYNC_DRIVERS = {
    "postgres": "postgresql+psycopg",
    "postgresql": "postgresql+psycopg",
    "sqlite": "sqlite+aiosqlite",
}


def _normalize_database_url(database_url: str) -> str:
    """Pin bare dialect URLs to the async driver the store runs on."""
    scheme, separator, rest = database_url.partition("://")
    if not separator:
        return database_url
    return f"{_ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def _engine_options(database_url: str) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True}


def supports_row_locks(engine: AsyncEngine) -> bool:
    """Whether `FOR UPDATE` on the zone row actually serializes writers."""
    return engine.dialect.name != "sqlite"


_DATABASE_URL = _normalize_database_url(settings.database_url)
async_engine: AsyncEngine = create_async_engine(_DATABASE_URL, **_engine_options(_DATABASE_URL))
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def _alembic_config() -> Config:
    config = Config(str(ALEMBIC_INI))
    # Logging is already configured by the host process.
    config.attributes["configure_logger"] = False
    return config


def run_migrations() -> None:
    """Upgrade the zone store schema to the latest revision."""
    logger.info("db.migrations.start", extra={"revision": "head"})
    command.upgrade(_alembic_config(), "head")
    logger.info("db.migrations.complete")


async def init_db() -> None:
    """Migrate or create the schema before the first zone operation."""
    if not supports_row_locks(async_engine):
        logger.warning(
            "db.row_locks_unavailable",
            extra={"dialect": async_engine.dialect.name},
        )
    if settings.db_auto_migrate:
        if any(MIGRATION_VERSIONS.glob("*.py")):
            await asyncio.to_thread(run_migrations)
            return
        logger.warning("db.migrations.missing", extra={"path": str(MIGRATION_VERSIONS)})

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and roll back whatever its caller left uncommitted.

    Services commit their own units of work, so a transaction still open here
    belongs to a failed operation and would otherwise keep its zone lock.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                try:
                    await session.rollback()
                except SQLAlchemyError:
                    logger.exception("db.session.rollback_failed")
