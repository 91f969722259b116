"""Reception stage: accept a document issued by a counterparty."""

from typing import Any

import orjson
from loguru import logger

from src.core.types import DocumentPayload
from src.pipeline.collaborators import DocumentRecord
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import identification, issuer_nit, receiver_nit
from src.pipeline.enums import DocumentClass, DocumentState, DteStatus, StageErrorCode
from src.pipeline.stages.base import failure
from src.pipeline.state import RunState, StatePatch


async def _archive(
    state: RunState,
    deps: PipelineDependencies,
    document: DocumentPayload,
    codigo: str | None,
) -> None:
    """Store the received document next to the ones the business issued.

    Archiving is best-effort: the counterparty's document is already valid
    without our copy, so a store failure is logged and the run goes on.
    """
    owner = state.business_id or receiver_nit(document)
    if not codigo or not owner:
        logger.debug("Received document not archived: no generation code or owner")
        return

    ident = identification(document)
    firma = document.get("firma")
    record = DocumentRecord(
        codigo_generacion=codigo,
        business_id=owner,
        tipo_dte=str(ident.get("tipoDte", "")),
        numero_control=str(ident.get("numeroControl", "")),
        estado=DocumentState.PROCESSED,
        dte_json=document,
        firma_jws=firma if isinstance(firma, str) else "",
        issuer_nit=issuer_nit(document),
        clase_documento=DocumentClass.RECEIVED,
        sello_recibido=document.get("selloRecibido"),
        fh_procesamiento=document.get("fechaHoraRecepcion"),
    )
    try:
        await deps.bounded(deps.documents.upsert(record))
    except Exception:
        logger.exception("Could not archive received document", stage="reception")


async def receive(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Take the document as given, parsing the raw payload when needed.

    Received documents are assumed valid; they are archived and booked, not
    re-checked.
    """
    if state.dte:
        await _archive(state, deps, state.dte, state.codigo_generacion)
        return StatePatch(
            status=DteStatus.COMPLETED,
            is_valid=True,
            progress_percentage=90,
            current_step="reception",
        )

    if state.raw_input is None or state.raw_input == "":
        return failure(
            StageErrorCode.RECEPTION_NO_DTE,
            "No se proporcionó DTE de compra",
            can_retry=False,
            progress=10,
            validation_errors=["No se proporcionó DTE de compra"],
        )

    try:
        document = (
            orjson.loads(state.raw_input)
            if isinstance(state.raw_input, (str, bytes))
            else state.raw_input
        )
    except orjson.JSONDecodeError as e:
        logger.warning("Received payload is not JSON: {}", e, stage="reception")
        document = None

    if not isinstance(document, dict):
        return failure(
            StageErrorCode.RECEPTION_PARSE,
            "Error parseando JSON recibido",
            can_retry=False,
            progress=10,
            validation_errors=["Error parseando JSON recibido"],
        )

    fields: dict[str, Any] = {"dte": document}
    codigo = state.codigo_generacion
    if codigo is None:
        codigo = identification(document).get("codigoGeneracion")
        fields["codigo_generacion"] = codigo
    await _archive(state, deps, document, codigo)
    return StatePatch(
        status=DteStatus.COMPLETED,
        is_valid=True,
        progress_percentage=90,
        current_step="reception",
        **fields,
    )
