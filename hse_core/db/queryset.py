"""Immutable, chainable query wrapper around SQLModel select statements."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """Lazily built select; nothing touches the database until `first`/`all`."""

    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.where(*criteria))

    def filter_by(self, **kwargs: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.filter_by(**kwargs))

    def order_by(self, *ordering: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.order_by(*ordering))

    def limit(self, count: int) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.limit(count))

    def for_update(self) -> QuerySet[ModelT]:
        """Lock selected rows until the surrounding transaction ends."""
        return replace(self, statement=self.statement.with_for_update())

    async def first(self, session: AsyncSession) -> ModelT | None:
        result = await session.exec(self.statement)
        return result.first()

    async def all(self, session: AsyncSession) -> list[ModelT]:
        result = await session.exec(self.statement)
        return list(result)
