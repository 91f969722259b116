"""Contingency stage: sign a deferred-transmission variant offline."""

from loguru import logger

from src.pipeline.collaborators import IN_CONTINGENCY, DocumentRecord, TransmissionResult
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import identification, issuer_nit, to_contingency
from src.pipeline.enums import DocumentClass, DocumentState, DteStatus, StageErrorCode
from src.pipeline.stages.base import failure
from src.pipeline.stages.signing import sign_document
from src.pipeline.state import RunState, StatePatch


async def contingency(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Convert, re-validate, re-sign and store the contingency variant.

    Credentials were checked by the signing stage, so only the password and
    token already on the run state are used. The run completes from the
    caller's point of view; ``is_offline`` stays set for disclosure.
    """
    if not state.dte or state.password is None:
        return failure(
            StageErrorCode.CONTINGENCY_MISSING_INPUT,
            "Contingencia requiere el DTE y la contraseña de firma",
            can_retry=False,
            progress=70,
            validation_errors=["Error generating contingency: missing document or password"],
        )

    issued_at = deps.now()
    variant = to_contingency(state.dte, state.contingency_reason, issued_at)

    result = deps.validator(variant)
    if not result.valid or result.document is None:
        logger.error(
            "Contingency variant failed validation",
            stage="contingency",
            errors=result.errors,
        )
        return failure(
            StageErrorCode.CONTINGENCY_VALIDATION,
            "El DTE de contingencia no es válido",
            can_retry=True,
            progress=70,
            validation_errors=[
                f"Error generating contingency: {error}" for error in result.errors
            ],
        )
    variant = result.document

    try:
        signature = await sign_document(deps, variant, state.password, state.api_token)
    except Exception as e:
        logger.exception("Contingency signing failed", stage="contingency")
        return failure(
            StageErrorCode.CONTINGENCY_SIGN,
            f"Error al firmar el DTE de contingencia: {e}",
            can_retry=True,
            progress=70,
            validation_errors=[f"Error generating contingency: {e}"],
        )

    codigo = state.codigo_generacion or identification(variant).get("codigoGeneracion")
    if state.business_id and codigo:
        ident = identification(variant)
        try:
            await deps.bounded(
                deps.documents.upsert(
                    DocumentRecord(
                        codigo_generacion=codigo,
                        business_id=state.business_id,
                        tipo_dte=str(ident.get("tipoDte", "")),
                        numero_control=str(ident.get("numeroControl", "")),
                        estado=DocumentState.CONTINGENCY,
                        dte_json=variant,
                        firma_jws=signature,
                        issuer_nit=issuer_nit(variant),
                        clase_documento=DocumentClass.ISSUED,
                    )
                )
            )
        except Exception as e:
            logger.exception("Storing contingency document failed", stage="contingency")
            return failure(
                StageErrorCode.CONTINGENCY_SIGN,
                f"Error al guardar el DTE de contingencia: {e}",
                can_retry=True,
                progress=70,
                validation_errors=[f"Error generating contingency: {e}"],
            )

    logger.info(
        "Contingency document signed",
        stage="contingency",
        reason=state.contingency_reason,
    )
    return StatePatch(
        dte=variant,
        signature=signature,
        is_signed=True,
        is_offline=True,
        contingency_reason=state.contingency_reason,
        authority_response=TransmissionResult(
            success=False,
            estado=IN_CONTINGENCY,
            message="Documento en contingencia",
            receipt_timestamp=issued_at.isoformat(),
        ),
        status=DteStatus.COMPLETED,
        progress_percentage=90,
        current_step="contingency",
        estimated_time=5,
    )
