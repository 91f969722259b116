"""Base repository with the lookups and upsert the stores need.

Every write the pipeline performs is idempotent by a natural key, so the
repository offers PostgreSQL ``INSERT ... ON CONFLICT DO UPDATE`` rather than
separate create/update calls.
"""

from collections.abc import Mapping, Sequence

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.base import BaseModel


class BaseRepository[T: BaseModel]:
    """Async repository bound to one model class.

    Args:
        session: The async SQLAlchemy session to use for operations.
        model_class: The SQLAlchemy model class this repository manages.

    Example:
        class DteDocumentRepository(BaseRepository[DteDocumentModel]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, DteDocumentModel)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    async def get_by_id(self, entity_id: int) -> T | None:
        stmt = select(self.model_class).where(self.model_class.id == entity_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _filtered(self, filters: Mapping[str, object]):  # noqa: ANN202 - Select[tuple[T]]
        stmt = select(self.model_class)
        for field, value in filters.items():
            if not hasattr(self.model_class, field):
                msg = f"{self.model_class.__name__} has no column '{field}'"
                raise AttributeError(msg)
            stmt = stmt.where(getattr(self.model_class, field) == value)
        return stmt.order_by(self.model_class.id)

    async def filter_by(self, **filters: object) -> list[T]:
        """Return every row matching all the given column values."""
        result = await self.session.execute(self._filtered(filters))
        instances = list(result.scalars().all())
        logger.debug(
            "Filtered {} - found {} rows",
            self.model_class.__name__,
            len(instances),
            filters=filters,
        )
        return instances

    async def find_one_by(self, **filters: object) -> T | None:
        """Return the first row matching all the given column values."""
        result = await self.session.execute(self._filtered(filters).limit(1))
        return result.scalar_one_or_none()

    async def upsert(
        self,
        values: Mapping[str, object],
        conflict_columns: Sequence[str] | None = None,
    ) -> None:
        """Insert a row or overwrite the row sharing its natural key.

        Args:
            values: Column values of the row.
            conflict_columns: Columns of the unique constraint identifying it.
                Defaults to the model's ``natural_key``.
        """
        conflict_columns = conflict_columns or self.model_class.natural_key
        stmt = insert(self.model_class).values(**values)
        update_columns = {
            name: stmt.excluded[name]
            for name in values
            if name not in conflict_columns
        }
        update_columns["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_columns), set_=update_columns
        )
        await self.session.execute(stmt)
        logger.debug(
            "Upserted {} row",
            self.model_class.__name__,
            key={name: values[name] for name in conflict_columns},
        )
