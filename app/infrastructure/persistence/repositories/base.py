"""Base repository: generic reads, create/update, and idempotent insert."""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.persistence.database import Base, dialect_insert


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with get_by_id, create, update and idempotent insert.

    Repositories flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def get_by_id(
        self, entity_id: str, *, fresh: bool = False
    ) -> ModelType | None:
        """Return a single record by primary key, or None.

        fresh=True overwrites any copy already in the identity map (use after
        a bulk UPDATE in the same session).
        """
        model: Any = self.model
        stmt = select(self.model).where(model.id == entity_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        """Persist a new record; server defaults are loaded back."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """Flush pending changes on an attached record and reload it."""
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def insert_ignoring_conflict(
        self, values: dict[str, Any], conflict_columns: Sequence[str]
    ) -> str | None:
        """INSERT ... ON CONFLICT DO NOTHING on the unique key.

        Returns the new row id, or None when a row with the same key already
        exists (the existing row is left untouched).
        """
        model: Any = self.model
        stmt = (
            dialect_insert(self.db, self.model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
            .returning(model.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
