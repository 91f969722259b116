"""SQL-backed credential, document and accumulator stores.

Each call opens its own session through ``get_async_session`` so a store can
be shared by concurrent pipeline runs; atomicity per key comes from the
upserts. Database errors surface as ``StorageError``.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from decimal import Decimal

from pydantic import SecretStr
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import StorageError
from src.infrastructure.database.models import TaxAccumulatorModel
from src.infrastructure.database.repositories import (
    CredentialRepository,
    DteDocumentRepository,
    TaxAccumulatorRepository,
)
from src.infrastructure.database.session import get_async_session
from src.pipeline.collaborators import Credentials, DocumentRecord, TaxAccumulator
from src.pipeline.enums import DocumentClass, DocumentState, Environment

type SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class _SqlStore:
    def __init__(self, session_factory: SessionFactory = get_async_session) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            msg = f"{type(self).__name__}.{operation} failed: {type(e).__name__}"
            raise StorageError(msg, context={"operation": operation}, cause=e) from e


class SqlCredentialStore(_SqlStore):
    async def resolve(
        self, business_id: str, environment: Environment
    ) -> Credentials | None:
        async with self._session("resolve") as session:
            row = await CredentialRepository(session).get_for_environment(
                business_id, environment.value
            )
        if row is None:
            return None
        return Credentials(
            password=SecretStr(row.password_pri) if row.password_pri else None,
            api_token=SecretStr(row.api_token) if row.api_token else None,
            active=row.active,
        )


class SqlDocumentStore(_SqlStore):
    async def upsert(self, record: DocumentRecord) -> None:
        values = record.model_dump(mode="json")
        async with self._session("upsert") as session:
            await DteDocumentRepository(session).upsert_document(values)

    async def get(self, codigo_generacion: str) -> DocumentRecord | None:
        async with self._session("get") as session:
            row = await DteDocumentRepository(session).get_by_codigo(codigo_generacion)
        if row is None:
            return None
        return DocumentRecord(
            codigo_generacion=row.codigo_generacion,
            business_id=row.business_id,
            tipo_dte=row.tipo_dte,
            numero_control=row.numero_control,
            estado=DocumentState(row.estado),
            dte_json=row.dte_json,
            firma_jws=row.firma_jws,
            issuer_nit=row.issuer_nit,
            clase_documento=DocumentClass(row.clase_documento),
            mh_response=row.mh_response,
            sello_recibido=row.sello_recibido,
            fh_procesamiento=row.fh_procesamiento,
        )


def _to_accumulator(row: TaxAccumulatorModel) -> TaxAccumulator:
    return TaxAccumulator(
        business_id=row.business_id,
        period_key=row.period_key,
        scope=row.scope,
        total_gravadas=Decimal(row.total_gravadas),
        total_exentas=Decimal(row.total_exentas),
        total_no_sujetas=Decimal(row.total_no_sujetas),
        total_iva=Decimal(row.total_iva),
        total_rete_iva=Decimal(row.total_rete_iva),
        total_rete_renta=Decimal(row.total_rete_renta),
        total_operaciones=Decimal(row.total_operaciones),
        cantidad_documentos=row.cantidad_documentos,
        updated_at=row.updated_at,
    )


class SqlAccumulatorStore(_SqlStore):
    async def get(
        self, business_id: str, period_key: str, scope: str
    ) -> TaxAccumulator | None:
        async with self._session("get") as session:
            row = await TaxAccumulatorRepository(session).get_for_period(
                business_id, period_key, scope
            )
        return _to_accumulator(row) if row is not None else None

    async def upsert(self, accumulator: TaxAccumulator) -> None:
        values = accumulator.model_dump(exclude={"updated_at"})
        async with self._session("upsert") as session:
            await TaxAccumulatorRepository(session).upsert_accumulator(values)

    async def list_for_business(
        self, business_id: str, year: int | None = None
    ) -> list[TaxAccumulator]:
        async with self._session("list_for_business") as session:
            rows = await TaxAccumulatorRepository(session).list_for_business(
                business_id, year
            )
        return [_to_accumulator(row) for row in rows]
