"""Model-bound query managers exposed as `Model.objects`."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlmodel import select

from hse_core.db.queryset import QuerySet

ModelT = TypeVar("ModelT")


class ModelManager(Generic[ModelT]):
    """Entry point for building querysets for one model class."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(select(self.model))

    def by_id(self, obj_id: Any) -> QuerySet[ModelT]:
        return self.all().filter(self.model.id == obj_id)  # type: ignore[attr-defined]

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **kwargs: Any) -> QuerySet[ModelT]:
        return self.all().filter_by(**kwargs)


class ManagerDescriptor(Generic[ModelT]):
    """Descriptor returning a fresh manager bound to the owning model class."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
