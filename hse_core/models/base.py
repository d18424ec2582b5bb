"""Base model class shared by all table models."""

from __future__ import annotations

from typing import Any, ClassVar

from sqlmodel import SQLModel

from hse_core.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """SQLModel base exposing the `objects` query manager."""

    objects: ClassVar[ManagerDescriptor[Any]] = ManagerDescriptor()
