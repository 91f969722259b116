"""DTE document schema and the document transformations the stages share.

The schema below covers the invoice family (FE, CCF and related types) the
business issues. It is used to judge structural validity; the payload itself
stays a plain dictionary so fields the schema doesn't model survive
untouched through signing and storage.
"""

import copy
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Literal, Self
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from src.core.constants import (
    AMOUNT_TOLERANCE,
    DEFAULT_CONTINGENCY_REASON,
    MONEY_DECIMALS,
    QUANTITY_DECIMALS,
)
from src.core.types import DocumentPayload

# Fields dropped before signing: artifacts of a previous signing/reception cycle
NON_CONTENT_FIELDS = ("firma", "selloRecibido", "fechaHoraRecepcion")

DEFERRED_MODEL = 2
CONTINGENCY_OPERATION = 2
INTERNET_FAILURE_CONTINGENCY = 2

ITEM_MONEY_FIELDS = (
    "montoDescu",
    "ventaNoSuj",
    "ventaExenta",
    "ventaGravada",
    "ivaItem",
    "psv",
    "noGravado",
)
ITEM_QUANTITY_FIELDS = ("cantidad", "precioUni")
SUMMARY_NON_MONEY_FIELDS = frozenset({"condicionOperacion", "totalLetras"})

DteType = Literal["01", "03", "04", "05", "06", "07", "08", "09", "11", "14", "15"]


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class Identificacion(_Schema):
    version: int = Field(ge=1)
    ambiente: Literal["00", "01"]
    tipo_dte: DteType
    numero_control: str = Field(pattern=r"^DTE-\d{2}-[A-Z0-9]{8}-\d{15}$")
    codigo_generacion: str = Field(
        pattern=r"^[A-F0-9]{8}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{12}$"
    )
    tipo_modelo: Literal[1, 2]
    tipo_operacion: Literal[1, 2]
    tipo_contingencia: int | None = Field(default=None, ge=1, le=5)
    motivo_contin: str | None = None
    fec_emi: date
    hor_emi: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d$")
    tipo_moneda: Literal["USD"]

    @model_validator(mode="after")
    def _contingency_fields_match_operation(self) -> Self:
        if self.tipo_operacion == CONTINGENCY_OPERATION and self.tipo_contingencia is None:
            msg = "tipoContingencia is required when tipoOperacion is 2"
            raise ValueError(msg)
        if self.tipo_operacion != CONTINGENCY_OPERATION and self.tipo_contingencia:
            msg = "tipoContingencia must be null for normal transmission"
            raise ValueError(msg)
        return self


class Direccion(_Schema):
    departamento: str
    municipio: str
    complemento: str


class Emisor(_Schema):
    nit: str = Field(pattern=r"^([0-9]{14}|[0-9]{9})$")
    nrc: str = Field(pattern=r"^[0-9]{1,8}$")
    nombre: str = Field(min_length=1)
    cod_actividad: str | None = None
    desc_actividad: str | None = None
    direccion: Direccion | None = None
    telefono: str | None = None
    correo: str | None = None


class Item(_Schema):
    num_item: int = Field(ge=1)
    tipo_item: Literal[1, 2, 3, 4]
    cantidad: Decimal = Field(gt=0)
    descripcion: str = Field(min_length=1)
    precio_uni: Decimal = Field(ge=0)
    monto_descu: Decimal = Field(default=Decimal(0), ge=0)
    venta_no_suj: Decimal = Field(default=Decimal(0), ge=0)
    venta_exenta: Decimal = Field(default=Decimal(0), ge=0)
    venta_gravada: Decimal = Field(default=Decimal(0), ge=0)


class Tributo(_Schema):
    codigo: str
    descripcion: str | None = None
    valor: Decimal


class Resumen(_Schema):
    total_no_suj: Decimal = Field(ge=0)
    total_exenta: Decimal = Field(ge=0)
    total_gravada: Decimal = Field(ge=0)
    sub_total_ventas: Decimal = Field(ge=0)
    total_descu: Decimal = Field(default=Decimal(0), ge=0)
    total_iva: Decimal | None = Field(default=None, ge=0)
    tributos: list[Tributo] | None = None
    iva_rete1: Decimal = Field(default=Decimal(0), ge=0)
    rete_renta: Decimal = Field(default=Decimal(0), ge=0)
    monto_total_operacion: Decimal = Field(ge=0)
    total_pagar: Decimal = Field(ge=0)
    condicion_operacion: Literal[1, 2, 3]


class Dte(_Schema):
    identificacion: Identificacion
    emisor: Emisor
    receptor: dict[str, Any] | None = None
    cuerpo_documento: list[Item] = Field(min_length=1)
    resumen: Resumen


class DocumentValidation(BaseModel):
    """Result of validating one document."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[str] = Field(default_factory=list)
    document: DocumentPayload | None = None


def to_decimal(value: object) -> Decimal:
    """Convert a JSON number (or numeric string) to Decimal; None becomes 0."""
    if value is None:
        return Decimal(0)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        msg = f"Not a number: {value!r}"
        raise ValueError(msg) from e


def round_half_up(value: object, decimals: int = MONEY_DECIMALS) -> float:
    """Round half-up to a fixed number of decimals, returning a JSON number."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _round_fields(
    target: dict[str, Any], fields: tuple[str, ...] | list[str], decimals: int
) -> None:
    for name in fields:
        value = target.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            target[name] = round_half_up(value, decimals)


def normalize_document(document: DocumentPayload) -> DocumentPayload:
    """Return a copy with amounts rounded the way the authority expects.

    Quantities and unit prices keep 8 decimals, every monetary amount 2.
    """
    normalized = copy.deepcopy(document)

    for item in normalized.get("cuerpoDocumento") or []:
        if isinstance(item, dict):
            _round_fields(item, ITEM_QUANTITY_FIELDS, QUANTITY_DECIMALS)
            _round_fields(item, ITEM_MONEY_FIELDS, MONEY_DECIMALS)

    resumen = normalized.get("resumen")
    if isinstance(resumen, dict):
        money_fields = [
            name for name in resumen if name not in SUMMARY_NON_MONEY_FIELDS
        ]
        _round_fields(resumen, money_fields, MONEY_DECIMALS)
        for tributo in resumen.get("tributos") or []:
            if isinstance(tributo, dict):
                _round_fields(tributo, ("valor",), MONEY_DECIMALS)
        for pago in resumen.get("pagos") or []:
            if isinstance(pago, dict):
                _round_fields(pago, ("montoPago",), MONEY_DECIMALS)

    return normalized


def _format_schema_errors(error: PydanticValidationError) -> list[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{location or 'documento'}: {detail['msg']}")
    return messages


def _reconciliation_errors(dte: Dte) -> list[str]:
    """Check declared totals against the sums of the line items."""
    items = dte.cuerpo_documento
    resumen = dte.resumen
    checks = (
        ("resumen.totalGravada", resumen.total_gravada, sum(i.venta_gravada for i in items)),
        ("resumen.totalExenta", resumen.total_exenta, sum(i.venta_exenta for i in items)),
        ("resumen.totalNoSuj", resumen.total_no_suj, sum(i.venta_no_suj for i in items)),
        (
            "resumen.subTotalVentas",
            resumen.sub_total_ventas,
            resumen.total_gravada + resumen.total_exenta + resumen.total_no_suj,
        ),
    )

    errors = []
    for location, declared, computed in checks:
        if abs(declared - computed) > AMOUNT_TOLERANCE:
            errors.append(
                f"{location}: declared {declared} does not match computed {computed}"
            )

    expected_numbers = list(range(1, len(items) + 1))
    if [item.num_item for item in items] != expected_numbers:
        errors.append("cuerpoDocumento: numItem must be consecutive starting at 1")

    return errors


def validate_document(document: DocumentPayload) -> DocumentValidation:
    """Judge structural and numeric validity of a DTE.

    The document is normalised first so that rounding noise from the caller
    never counts as a mismatch.

    Args:
        document: DTE as received from the caller.

    Returns:
        DocumentValidation: Validity, error strings ("field: description")
            and the normalised copy to sign.
    """
    normalized = normalize_document(document)
    try:
        parsed = Dte.model_validate(normalized)
    except PydanticValidationError as e:
        return DocumentValidation(valid=False, errors=_format_schema_errors(e))

    errors = _reconciliation_errors(parsed)
    if errors:
        return DocumentValidation(valid=False, errors=errors)
    return DocumentValidation(valid=True, document=normalized)


def clean_for_signing(document: DocumentPayload) -> DocumentPayload:
    """Copy of the document without signature and receipt artifacts."""
    cleaned = copy.deepcopy(document)
    for name in NON_CONTENT_FIELDS:
        cleaned.pop(name, None)
    return cleaned


def clean_nit(value: object) -> str:
    """Strip spaces and dashes from a taxpayer identifier."""
    return "".join(str(value or "").split()).replace("-", "")


def issuer_nit(document: DocumentPayload) -> str:
    emisor = document.get("emisor") or {}
    return clean_nit(emisor.get("nit"))


def receiver_nit(document: DocumentPayload) -> str:
    receptor = document.get("receptor") or {}
    return clean_nit(receptor.get("nit"))


def identification(document: DocumentPayload) -> dict[str, Any]:
    ident = document.get("identificacion")
    return ident if isinstance(ident, dict) else {}


def now_in(timezone: str) -> datetime:
    """Current wall-clock time in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone))


def _emission_stamp(moment: datetime) -> tuple[str, str]:
    return moment.strftime("%Y-%m-%d"), moment.strftime("%H:%M:%S")


def to_contingency(
    document: DocumentPayload,
    reason: str | None,
    issued_at: datetime,
) -> DocumentPayload:
    """Derive the deferred-transmission variant of a document.

    Marks the document as deferred model / contingency operation and stamps
    the moment of offline signing as its emission date and time. The stamp
    always differs from the original one: when both fall in the same second
    the variant is stamped one second later.

    Args:
        document: The document whose transmission failed.
        reason: Why the authority could not be reached.
        issued_at: Moment of offline signing.

    Returns:
        DocumentPayload: A new document; the input is left untouched.
    """
    variant = copy.deepcopy(document)
    ident = variant.setdefault("identificacion", {})
    ident["tipoModelo"] = DEFERRED_MODEL
    ident["tipoOperacion"] = CONTINGENCY_OPERATION
    ident["tipoContingencia"] = INTERNET_FAILURE_CONTINGENCY
    ident["motivoContin"] = reason or DEFAULT_CONTINGENCY_REASON

    original_stamp = (ident.get("fecEmi"), ident.get("horEmi"))
    if _emission_stamp(issued_at) == original_stamp:
        issued_at += timedelta(seconds=1)
    ident["fecEmi"], ident["horEmi"] = _emission_stamp(issued_at)
    return variant
