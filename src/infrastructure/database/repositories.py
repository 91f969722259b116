"""Repositories for the three tables the pipeline writes and reads."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import (
    BusinessCredentialModel,
    DteDocumentModel,
    TaxAccumulatorModel,
)
from src.infrastructure.database.repository import BaseRepository


class DteDocumentRepository(BaseRepository[DteDocumentModel]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, DteDocumentModel)

    async def get_by_codigo(self, codigo_generacion: str) -> DteDocumentModel | None:
        return await self.find_one_by(codigo_generacion=codigo_generacion)

    async def upsert_document(self, values: dict[str, object]) -> None:
        await self.upsert(values)


class TaxAccumulatorRepository(BaseRepository[TaxAccumulatorModel]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TaxAccumulatorModel)

    async def get_for_period(
        self, business_id: str, period_key: str, scope: str
    ) -> TaxAccumulatorModel | None:
        return await self.find_one_by(
            business_id=business_id, period_key=period_key, scope=scope
        )

    async def list_for_business(
        self, business_id: str, year: int | None = None
    ) -> list[TaxAccumulatorModel]:
        """Accumulators of a business, optionally limited to one year."""
        stmt = select(TaxAccumulatorModel).where(
            TaxAccumulatorModel.business_id == business_id
        )
        if year is not None:
            stmt = stmt.where(TaxAccumulatorModel.period_key.startswith(f"{year:04d}-"))
        stmt = stmt.order_by(TaxAccumulatorModel.period_key)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_accumulator(self, values: dict[str, object]) -> None:
        await self.upsert(values)


class CredentialRepository(BaseRepository[BusinessCredentialModel]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, BusinessCredentialModel)

    async def get_for_environment(
        self, business_id: str, environment: str
    ) -> BusinessCredentialModel | None:
        return await self.find_one_by(business_id=business_id, environment=environment)
