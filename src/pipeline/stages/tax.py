"""Tax stage: book a completed document into its monthly accumulator."""

from loguru import logger

from src.core.constants import ACCUMULATOR_SCOPE_ALL
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import clean_nit, issuer_nit, receiver_nit
from src.pipeline.enums import DteStatus, FlowType
from src.pipeline.state import RunState, StatePatch
from src.pipeline.tax import apply_document, create_empty_accumulator, period_of_document


def _accumulator_owner(state: RunState) -> str:
    if state.business_id:
        return clean_nit(state.business_id)
    if not state.dte:
        return ""
    if state.flow_type == FlowType.EMISSION:
        return issuer_nit(state.dte)
    return receiver_nit(state.dte)


async def update_accumulator(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Apply the document to the (business, month, ALL) accumulator.

    Bookkeeping never fails a completed document: errors are logged and an
    empty patch is returned.
    """
    if state.status != DteStatus.COMPLETED or not state.dte:
        return StatePatch()

    owner = _accumulator_owner(state)
    if not owner:
        logger.warning("No business to book the document under", stage="tax")
        return StatePatch()

    try:
        period = period_of_document(state.dte)
        current = await deps.bounded(
            deps.accumulators.get(owner, period.key, ACCUMULATOR_SCOPE_ALL)
        )
        base = current or create_empty_accumulator(owner, period)
        updated = apply_document(base, state.dte, state.flow_type, now=deps.now())
        await deps.bounded(deps.accumulators.upsert(updated))
    except Exception:
        logger.exception("Tax accumulator update failed", stage="tax")
        return StatePatch()

    logger.info(
        "Tax accumulator updated",
        stage="tax",
        period_key=updated.period_key,
        side="credit" if state.flow_type == FlowType.RECEPTION else "debit",
    )
    return StatePatch(
        tax_impact=updated,
        progress_percentage=100,
        current_step="tax",
        estimated_time=0,
    )
