"""Caller-facing envelope built from a finished run.

Whatever happened inside the pipeline, callers get ``{success, data?, error?}``.
``data`` is present whenever the document is usable (accepted, accepted with
observations, completed offline or received); ``error`` is present on any
failure and also, as a non-retryable warning, when an accepted document
carries something the user should know about.
"""

from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.pipeline.authority_errors import (
    OBSERVATIONS_DESCRIPTOR_CODE,
    ErrorCategory,
    classify_authority_response,
)
from src.pipeline.documents import identification
from src.pipeline.enums import DteStatus
from src.pipeline.state import RunState


class CallerCategory(StrEnum):
    AUTH = "auth"
    DATA = "data"
    MATH = "math"
    CONTINGENCY = "contingency"
    NETWORK = "network"
    SYSTEM = "system"


class CallerSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class _Envelope(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessData(_Envelope):
    codigo_generacion: str | None = None
    sello_recepcion: str | None = None
    fecha_hora_recepcion: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None
    json_url: str | None = None


class ProcessError(_Envelope):
    severity: CallerSeverity
    category: CallerCategory
    code: str = Field(..., examples=["MH_DATA_NIT_NOT_EXISTS"])
    user_message: str
    can_retry: bool = Field(
        ..., description="Whether the caller should offer a retry action"
    )
    details: list[str] | None = Field(
        default=None, description="Raw authority codes or validation errors"
    )


class ProcessResponse(_Envelope):
    success: bool
    data: ProcessData | None = None
    error: ProcessError | None = None


CATEGORY_TO_CALLER: Final[dict[ErrorCategory, CallerCategory]] = {
    ErrorCategory.AUTH: CallerCategory.AUTH,
    ErrorCategory.DATA: CallerCategory.DATA,
    ErrorCategory.DATE: CallerCategory.MATH,
    ErrorCategory.CALCULATION: CallerCategory.MATH,
    ErrorCategory.CONTINGENCY: CallerCategory.CONTINGENCY,
    ErrorCategory.TECHNICAL: CallerCategory.SYSTEM,
    ErrorCategory.WARNING: CallerCategory.DATA,
}

NETWORK_ERRORS: Final[dict[str, ProcessError]] = {
    "TIMEOUT": ProcessError(
        severity=CallerSeverity.ERROR,
        category=CallerCategory.NETWORK,
        code="MH_TIMEOUT",
        user_message="El Ministerio de Hacienda está tardando demasiado en "
        "responder. Tu documento se ha guardado de forma segura y podrás "
        "enviarlo más tarde.",
        can_retry=True,
        details=["Timeout waiting for the authority"],
    ),
    "CONNECTION_ERROR": ProcessError(
        severity=CallerSeverity.ERROR,
        category=CallerCategory.NETWORK,
        code="MH_CONNECTION_ERROR",
        user_message="No se puede conectar con el Ministerio de Hacienda. "
        "Verifica tu conexión a internet o intenta más tarde.",
        can_retry=True,
        details=["Connection failed"],
    ),
    "SERVER_ERROR": ProcessError(
        severity=CallerSeverity.ERROR,
        category=CallerCategory.SYSTEM,
        code="MH_SERVER_ERROR",
        user_message="El servidor del Ministerio de Hacienda tiene problemas "
        "técnicos. Tu documento está seguro y podrás reintentar.",
        can_retry=True,
        details=["HTTP 5xx error"],
    ),
}

CONTINGENCY_WARNING_CODE: Final = "DTE_IN_CONTINGENCY"


def normalize_category(category: ErrorCategory | str) -> CallerCategory:
    """Collapse an internal error category into the caller's category set."""
    try:
        return CATEGORY_TO_CALLER[ErrorCategory(category)]
    except (KeyError, ValueError):
        return CallerCategory.SYSTEM


def _generation_code(state: RunState) -> str | None:
    if state.codigo_generacion:
        return state.codigo_generacion
    if state.dte:
        return identification(state.dte).get("codigoGeneracion")
    return None


def _data(state: RunState) -> ProcessData:
    data = ProcessData(codigo_generacion=_generation_code(state))
    response = state.authority_response
    if response is not None and not state.is_offline:
        data.sello_recepcion = response.receipt_stamp
        data.fecha_hora_recepcion = response.receipt_timestamp
        data.pdf_url = response.pdf_url
        data.xml_url = response.xml_url
        data.json_url = response.json_url
    return data


def _completed(state: RunState) -> ProcessResponse:
    if state.is_offline:
        return ProcessResponse(
            success=True,
            data=_data(state),
            error=ProcessError(
                severity=CallerSeverity.WARNING,
                category=CallerCategory.CONTINGENCY,
                code=CONTINGENCY_WARNING_CODE,
                user_message="Tu documento fue firmado en contingencia y se "
                "enviará a Hacienda cuando el servicio esté disponible.",
                can_retry=False,
                details=[state.contingency_reason] if state.contingency_reason else None,
            ),
        )

    response = state.authority_response
    if response is not None and response.accepted_with_observations:
        observation = classify_authority_response(response).observations
        details = list(response.observations) or ["Código 002: Recibido con observaciones"]
        return ProcessResponse(
            success=True,
            data=_data(state),
            error=ProcessError(
                severity=CallerSeverity.WARNING,
                category=CallerCategory.DATA,
                code=observation.code if observation else OBSERVATIONS_DESCRIPTOR_CODE,
                user_message=observation.user_message
                if observation
                else "Hacienda aceptó tu documento con observaciones.",
                can_retry=False,
                details=details,
            ),
        )

    return ProcessResponse(success=True, data=_data(state))


def _authority_rejection(state: RunState) -> ProcessResponse | None:
    response = state.authority_response
    if response is None or not response.errors:
        return None

    classified = classify_authority_response(response)
    main = next(iter(classified.errors or classified.warnings), None)
    if main is None:
        return None

    return ProcessResponse(
        success=False,
        error=ProcessError(
            severity=CallerSeverity.ERROR,
            category=normalize_category(main.category),
            code=main.code,
            user_message=main.user_message,
            # Rejections need corrected input; never offer an automatic retry
            can_retry=main.can_retry and state.can_retry,
            details=[f"{error.code}: {error.description}" for error in response.errors],
        ),
    )


def build_process_response(state: RunState) -> ProcessResponse:
    """Map a finished run onto the caller envelope.

    Args:
        state: The run state the orchestrator ended with.

    Returns:
        ProcessResponse: Envelope ready to serialise.
    """
    if state.status == DteStatus.COMPLETED:
        return _completed(state)

    if state.status == DteStatus.CONTINGENCY:
        timeout = NETWORK_ERRORS["TIMEOUT"]
        return ProcessResponse(
            success=False,
            error=timeout.model_copy(
                update={"user_message": state.contingency_reason or timeout.user_message}
            ),
        )

    if state.status == DteStatus.FAILED:
        if rejection := _authority_rejection(state):
            return rejection
        return ProcessResponse(
            success=False,
            error=ProcessError(
                severity=CallerSeverity.ERROR,
                category=CallerCategory.SYSTEM,
                code=state.error_code or "SYSTEM_ERROR",
                user_message=state.error_message or "Error interno del sistema",
                can_retry=state.can_retry,
                details=list(state.validation_errors) or None,
            ),
        )

    return ProcessResponse(
        success=False,
        error=ProcessError(
            severity=CallerSeverity.ERROR,
            category=CallerCategory.SYSTEM,
            code="UNKNOWN_ERROR",
            user_message="Error desconocido. Por favor intenta nuevamente.",
            can_retry=True,
            details=[f"Status: {state.status.value}"],
        ),
    )
