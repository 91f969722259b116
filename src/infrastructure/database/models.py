"""ORM models for processed documents, tax accumulators and credentials."""

from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.base import BaseModel

MONEY = Numeric(18, 2)


class DteDocumentModel(BaseModel):
    """A document the pipeline signed, keyed by its generation code."""

    __tablename__ = "dte_documents"
    natural_key = ("codigo_generacion",)

    codigo_generacion: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False
    )
    business_id: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    tipo_dte: Mapped[str] = mapped_column(String(2), nullable=False)
    numero_control: Mapped[str] = mapped_column(String(31), nullable=False)
    estado: Mapped[str] = mapped_column(String(20), nullable=False)
    dte_json: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    firma_jws: Mapped[str] = mapped_column(Text, nullable=False)
    issuer_nit: Mapped[str] = mapped_column(String(20), nullable=False)
    clase_documento: Mapped[str] = mapped_column(String(10), nullable=False)
    mh_response: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    sello_recibido: Mapped[str | None] = mapped_column(String(64))
    fh_procesamiento: Mapped[str | None] = mapped_column(String(32))


class TaxAccumulatorModel(BaseModel):
    """Monthly totals for one (business, period, scope)."""

    __tablename__ = "tax_accumulators"
    natural_key = ("business_id", "period_key", "scope")
    __table_args__ = (UniqueConstraint(*natural_key),)

    business_id: Mapped[str] = mapped_column(String(20), nullable=False)
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)
    scope: Mapped[str] = mapped_column(String(10), nullable=False)
    total_gravadas: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_exentas: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_no_sujetas: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_iva: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_rete_iva: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_rete_renta: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    total_operaciones: Mapped[Decimal] = mapped_column(
        MONEY, default=0, nullable=False
    )
    cantidad_documentos: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class BusinessCredentialModel(BaseModel):
    """Signing credentials of a business in one authority environment."""

    __tablename__ = "business_credentials"
    natural_key = ("business_id", "environment")
    __table_args__ = (UniqueConstraint(*natural_key),)

    business_id: Mapped[str] = mapped_column(String(20), nullable=False)
    environment: Mapped[str] = mapped_column(String(2), nullable=False)
    password_pri: Mapped[str | None] = mapped_column(Text)
    api_token: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
