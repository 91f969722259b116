"""Monthly tax accumulator arithmetic.

Issuance adds to the running totals (tax debit). Reception of
credit-eligible documents subtracts from them (tax credit), and reception of
withholding receipts adds to the withholding totals.
"""

from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from src.core.constants import (
    ACCUMULATOR_SCOPE_ALL,
    CREDIT_ELIGIBLE_DTE_TYPES,
    IVA_TRIBUTO_CODE,
    WITHHOLDING_DTE_TYPE,
)
from src.core.types import DocumentPayload
from src.pipeline.collaborators import TaxAccumulator
from src.pipeline.documents import identification, to_decimal
from src.pipeline.enums import FlowType


class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class DocumentAmounts(BaseModel):
    """Summary amounts of one document that feed the accumulator."""

    model_config = ConfigDict(frozen=True)

    gravada: Decimal
    exenta: Decimal
    no_sujeta: Decimal
    iva: Decimal
    rete_iva: Decimal
    rete_renta: Decimal

    @property
    def operations(self) -> Decimal:
        return self.gravada + self.exenta + self.no_sujeta


class MonthlySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_documents: int = 0
    total_operaciones: Decimal = Decimal(0)
    total_iva: Decimal = Decimal(0)
    total_retenciones: Decimal = Decimal(0)


def period_from_date(value: str | date) -> Period:
    """Fiscal period of an emission date ("YYYY-MM-DD" or a date).

    Raises:
        ValueError: If the string is not an ISO date.
    """
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return Period(year=value.year, month=value.month)


def period_of_document(document: DocumentPayload) -> Period:
    fec_emi = identification(document).get("fecEmi")
    if not fec_emi:
        msg = "Document has no identificacion.fecEmi"
        raise ValueError(msg)
    return period_from_date(fec_emi)


def create_empty_accumulator(
    business_id: str, period: Period, scope: str = ACCUMULATOR_SCOPE_ALL
) -> TaxAccumulator:
    return TaxAccumulator(business_id=business_id, period_key=period.key, scope=scope)


def extract_amounts(document: DocumentPayload) -> DocumentAmounts:
    """Read the accumulator-relevant totals from a document summary."""
    resumen = document.get("resumen") or {}

    iva = None
    for tributo in resumen.get("tributos") or []:
        if isinstance(tributo, dict) and tributo.get("codigo") == IVA_TRIBUTO_CODE:
            iva = to_decimal(tributo.get("valor"))
            break
    if iva is None:
        iva = to_decimal(resumen.get("totalIva"))

    rete_iva = resumen.get("totalIVAretenido")
    if rete_iva is None:
        rete_iva = resumen.get("totalRetencion")

    no_sujeta = resumen.get("totalNoSuj")
    if no_sujeta is None:
        no_sujeta = resumen.get("totalNoSujeta")

    return DocumentAmounts(
        gravada=to_decimal(resumen.get("totalGravada")),
        exenta=to_decimal(resumen.get("totalExenta")),
        no_sujeta=to_decimal(no_sujeta),
        iva=iva,
        rete_iva=to_decimal(rete_iva),
        rete_renta=to_decimal(resumen.get("reteRenta")),
    )


def apply_document(
    accumulator: TaxAccumulator,
    document: DocumentPayload,
    flow_type: FlowType,
    now: datetime | None = None,
) -> TaxAccumulator:
    """Return a new accumulator with one document's amounts applied.

    Applying the same document twice counts it twice; callers make sure a
    document reaches this function once.

    Args:
        accumulator: Totals before the document.
        document: A completed DTE.
        flow_type: Emission adds, reception subtracts credit-eligible types.
        now: Update timestamp; defaults to the current UTC time.

    Returns:
        TaxAccumulator: The updated totals.
    """
    amounts = extract_amounts(document)
    updates: dict[str, object] = {
        "cantidad_documentos": accumulator.cantidad_documentos + 1,
        "updated_at": now or datetime.now(UTC),
    }

    if flow_type == FlowType.EMISSION:
        updates |= {
            "total_gravadas": accumulator.total_gravadas + amounts.gravada,
            "total_exentas": accumulator.total_exentas + amounts.exenta,
            "total_no_sujetas": accumulator.total_no_sujetas + amounts.no_sujeta,
            "total_iva": accumulator.total_iva + amounts.iva,
            "total_operaciones": accumulator.total_operaciones + amounts.operations,
        }
    else:
        tipo_dte = identification(document).get("tipoDte")
        if tipo_dte in CREDIT_ELIGIBLE_DTE_TYPES:
            updates |= {
                "total_gravadas": accumulator.total_gravadas - amounts.gravada,
                "total_exentas": accumulator.total_exentas - amounts.exenta,
                "total_no_sujetas": accumulator.total_no_sujetas - amounts.no_sujeta,
                "total_iva": accumulator.total_iva - amounts.iva,
            }
        elif tipo_dte == WITHHOLDING_DTE_TYPE:
            updates |= {
                "total_rete_iva": accumulator.total_rete_iva + amounts.rete_iva,
                "total_rete_renta": accumulator.total_rete_renta + amounts.rete_renta,
            }

    return accumulator.model_copy(update=updates)


def summarize_month(accumulators: Iterable[TaxAccumulator]) -> MonthlySummary:
    """Totals across the accumulator rows of one month."""
    documents = 0
    operaciones = iva = retenciones = Decimal(0)
    for acc in accumulators:
        documents += acc.cantidad_documentos
        operaciones += acc.total_operaciones
        iva += acc.total_iva
        retenciones += acc.total_rete_iva + acc.total_rete_renta
    return MonthlySummary(
        total_documents=documents,
        total_operaciones=operaciones,
        total_iva=iva,
        total_retenciones=retenciones,
    )
