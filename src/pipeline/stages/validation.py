"""Validation stage: judge the document before any side effect happens."""

from loguru import logger

from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import identification
from src.pipeline.enums import DteStatus, StageErrorCode
from src.pipeline.stages.base import failure
from src.pipeline.state import RunState, StatePatch


async def validate(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Check schema conformance and total reconciliation.

    On success the normalised copy of the document replaces the caller's so
    that signing works on rounded amounts.
    """
    if not state.dte:
        return failure(
            StageErrorCode.VALIDATION_NO_DTE,
            "No se proporcionó un objeto DTE",
            can_retry=False,
            progress=5,
            is_valid=False,
            validation_errors=["No se proporcionó un objeto DTE"],
        )

    try:
        result = deps.validator(state.dte)
    except Exception as e:
        logger.exception("Validator raised unexpectedly", stage="validate")
        return failure(
            StageErrorCode.VALIDATION_SYSTEM,
            f"Error del sistema al validar DTE: {e}",
            can_retry=True,
            progress=20,
        )

    if not result.valid:
        logger.warning(
            "Document rejected by validation",
            stage="validate",
            error_count=len(result.errors),
        )
        return failure(
            StageErrorCode.VALIDATION_FIELDS,
            "El DTE tiene campos inválidos",
            can_retry=True,
            progress=20,
            is_valid=False,
            validation_errors=result.errors,
        )

    patch = StatePatch(
        dte=result.document,
        is_valid=True,
        validation_errors=[],
        status=DteStatus.SIGNING,
        progress_percentage=25,
        current_step="validator",
        estimated_time=45,
    )
    if state.codigo_generacion is None and result.document is not None:
        patch.codigo_generacion = identification(result.document).get(
            "codigoGeneracion"
        )

    logger.info("Document validated", stage="validate")
    return patch
