"""Transmission stage: hand the signed envelope to the tax authority."""

from typing import Final

from loguru import logger

from src.core.constants import COMMUNICATION_ERROR_CODE, MAX_TRANSMISSION_RETRIES
from src.pipeline.collaborators import (
    AuthorityError,
    DocumentRecord,
    TransmissionResult,
)
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import identification, issuer_nit
from src.pipeline.enums import DocumentClass, DocumentState, DteStatus, StageErrorCode
from src.pipeline.stages.base import failure
from src.pipeline.state import RunState, StatePatch

COMMUNICATION_FAILURE_REASON: Final = "Falla de comunicación con MH"


def _rejection_message(result: TransmissionResult) -> str:
    if result.errors:
        return ", ".join(
            f"MH [{error.code}]: {error.description}" for error in result.errors
        )
    return result.message or "Error desconocido MH"


async def _persist_accepted(
    state: RunState, deps: PipelineDependencies, result: TransmissionResult
) -> None:
    if not (state.business_id and state.codigo_generacion and state.dte):
        logger.warning("Accepted document not persisted: missing business or code")
        return

    ident = identification(state.dte)
    record = DocumentRecord(
        codigo_generacion=state.codigo_generacion,
        business_id=state.business_id,
        tipo_dte=str(ident.get("tipoDte", "")),
        numero_control=str(ident.get("numeroControl", "")),
        estado=DocumentState.PROCESSED,
        dte_json=state.dte,
        firma_jws=state.signature or "",
        issuer_nit=issuer_nit(state.dte),
        clase_documento=DocumentClass.ISSUED,
        mh_response=result.model_dump(mode="json"),
        sello_recibido=result.receipt_stamp,
        fh_procesamiento=result.receipt_timestamp,
    )
    await deps.bounded(deps.documents.upsert(record))


def _communication_failure(state: RunState) -> StatePatch:
    if state.retry_count < MAX_TRANSMISSION_RETRIES:
        attempt = state.retry_count + 1
        logger.warning(
            "Communication failure, retrying ({}/{})",
            attempt,
            MAX_TRANSMISSION_RETRIES + 1,
            stage="transmit",
        )
        return StatePatch(
            retry_count=attempt,
            status=DteStatus.TRANSMITTING,
            progress_percentage=60,
            current_step="transmitter",
            estimated_time=20,
        )

    logger.warning("Authority unreachable, switching to contingency", stage="transmit")
    return StatePatch(
        status=DteStatus.CONTINGENCY,
        is_offline=True,
        contingency_reason=COMMUNICATION_FAILURE_REASON,
        error_code=StageErrorCode.TRANSMIT_COMMUNICATION.value,
        error_message="Falla de comunicación con Ministerio de Hacienda",
        can_retry=True,
        progress_percentage=70,
    )


async def transmit(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Transmit the signed document and classify the outcome.

    Accepted documents are stored; communication failures are retried in place
    up to the retry cap and then escalate to contingency; authority rejections
    fail without retry.
    """
    if not state.is_signed or not state.signature:
        return failure(
            StageErrorCode.TRANSMIT_NO_SIGNATURE,
            "No hay firma JWS para transmitir",
            can_retry=True,
            progress=50,
        )

    try:
        try:
            result = await deps.bounded(
                deps.transmitter.transmit(state.signature, state.ambiente)
            )
        except TimeoutError:
            result = TransmissionResult(
                success=False,
                errors=[
                    AuthorityError(
                        code=COMMUNICATION_ERROR_CODE,
                        description="Timeout esperando respuesta de MH",
                    )
                ],
            )

        if result.success:
            await _persist_accepted(state, deps, result)
            logger.info(
                "Document accepted by the authority",
                stage="transmit",
                estado=result.estado,
                with_observations=result.accepted_with_observations,
            )
            return StatePatch(
                is_transmitted=True,
                authority_response=result,
                status=DteStatus.COMPLETED,
                progress_percentage=90,
                current_step="transmitter",
                estimated_time=5,
            )

        if result.is_communication_failure:
            return _communication_failure(state)

        logger.warning(
            "Document rejected by the authority",
            stage="transmit",
            codes=[error.code for error in result.errors],
        )
        return failure(
            StageErrorCode.TRANSMIT_MH_VALIDATION,
            _rejection_message(result),
            can_retry=False,
            progress=60,
            authority_response=result,
        )
    except Exception as e:
        logger.exception("Transmission failed unexpectedly", stage="transmit")
        return failure(
            StageErrorCode.TRANSMIT_SYSTEM,
            f"Error transmisión: {e}",
            can_retry=True,
            progress=60,
        )
