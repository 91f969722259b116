"""Contracts of the external collaborators the pipeline depends on.

The pipeline never talks to a database, the signing service or the tax
authority directly. It receives objects satisfying the protocols below;
``src.infrastructure`` provides the SQL and HTTP implementations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from src.core.constants import (
    ACCUMULATOR_SCOPE_ALL,
    COMMUNICATION_ERROR_CODE,
    HTTP_ERROR_CODE_PREFIX,
    OBSERVATIONS_CODE,
)
from src.core.types import DocumentPayload
from src.pipeline.enums import DocumentClass, DocumentState, Environment

ACCEPTED_WITH_OBSERVATIONS = "RECIBIDO_CON_OBSERVACIONES"
PROCESSED = "PROCESADO"
IN_CONTINGENCY = "CONTINGENCIA"


class Credentials(BaseModel):
    """Signing credentials stored for a business in one environment."""

    model_config = ConfigDict(frozen=True)

    password: SecretStr | None = None
    api_token: SecretStr | None = None
    active: bool = True


class AuthorityError(BaseModel):
    """One error or observation returned by the tax authority."""

    code: str
    description: str = ""


class TransmissionResult(BaseModel):
    """Outcome of handing a signed document to the tax authority."""

    success: bool
    estado: str | None = None
    receipt_stamp: str | None = None
    receipt_timestamp: str | None = None
    errors: list[AuthorityError] = Field(default_factory=list)
    observations: list[str] = Field(default_factory=list)
    message: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None
    json_url: str | None = None

    @property
    def is_communication_failure(self) -> bool:
        """True when any returned code marks a network or 5xx failure."""
        return any(
            error.code == COMMUNICATION_ERROR_CODE
            or error.code.startswith(HTTP_ERROR_CODE_PREFIX)
            for error in self.errors
        )

    @property
    def accepted_with_observations(self) -> bool:
        """True when the authority accepted the document but left remarks."""
        return self.success and (
            self.estado == ACCEPTED_WITH_OBSERVATIONS
            or bool(self.observations)
            or any(error.code == OBSERVATIONS_CODE for error in self.errors)
        )


class DocumentRecord(BaseModel):
    """A processed document as kept by the document store."""

    codigo_generacion: str
    business_id: str
    tipo_dte: str
    numero_control: str
    estado: DocumentState
    dte_json: DocumentPayload
    firma_jws: str
    issuer_nit: str
    clase_documento: DocumentClass = DocumentClass.ISSUED
    mh_response: dict[str, Any] | None = None
    sello_recibido: str | None = None
    fh_procesamiento: str | None = None


class TaxAccumulator(BaseModel):
    """Monthly running totals for one business, period and scope."""

    business_id: str
    period_key: str
    scope: str = ACCUMULATOR_SCOPE_ALL
    total_gravadas: Decimal = Decimal(0)
    total_exentas: Decimal = Decimal(0)
    total_no_sujetas: Decimal = Decimal(0)
    total_iva: Decimal = Decimal(0)
    total_rete_iva: Decimal = Decimal(0)
    total_rete_renta: Decimal = Decimal(0)
    total_operaciones: Decimal = Decimal(0)
    cantidad_documentos: int = 0
    updated_at: datetime | None = None


class CredentialStore(Protocol):
    """Looks up signing credentials by business and environment."""

    async def resolve(
        self, business_id: str, environment: Environment
    ) -> Credentials | None: ...


class DocumentStore(Protocol):
    """Keeps processed documents, idempotent by generation code."""

    async def upsert(self, record: DocumentRecord) -> None: ...

    async def get(self, codigo_generacion: str) -> DocumentRecord | None: ...


class AccumulatorStore(Protocol):
    """Keeps monthly tax accumulators keyed by (business, period, scope)."""

    async def get(
        self, business_id: str, period_key: str, scope: str
    ) -> TaxAccumulator | None: ...

    async def upsert(self, accumulator: TaxAccumulator) -> None: ...

    async def list_for_business(
        self, business_id: str, year: int | None = None
    ) -> list[TaxAccumulator]: ...


class Signer(Protocol):
    """External signing service producing a JWS envelope."""

    async def sign(
        self,
        nit: str,
        password: str,
        document: DocumentPayload,
        api_token: str | None = None,
    ) -> str: ...

    async def health_check(self) -> bool: ...


class Transmitter(Protocol):
    """Tax authority reception service."""

    async def transmit(
        self, signature: str, environment: Environment
    ) -> TransmissionResult: ...
