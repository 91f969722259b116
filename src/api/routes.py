"""DTE endpoints.

``/dte/process`` always answers 200: pipeline failures are part of the
envelope, not transport errors.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from loguru import logger

from src.api.constants import API_V1_PREFIX
from src.api.dependencies import get_accumulator_store, get_pipeline
from src.api.schemas.dte import MonthlySummaryResponse, ProcessRequest
from src.core.exceptions import NotFoundError
from src.pipeline.collaborators import AccumulatorStore
from src.pipeline.orchestrator import DtePipeline
from src.pipeline.tax import summarize_month

router = APIRouter(prefix=API_V1_PREFIX, tags=["dte"])


@router.post("/dte/process")
async def process_dte(
    body: ProcessRequest,
    pipeline: Annotated[DtePipeline, Depends(get_pipeline)],
) -> dict[str, Any]:
    """Validate, sign and transmit a document, or book a received one."""
    response = await pipeline.process(**body.pipeline_fields())
    if not response.success and response.error is not None:
        logger.info(
            "Document not processed",
            code=response.error.code,
            can_retry=response.error.can_retry,
        )
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/tax/{business_id}/{period_key}/summary")
async def monthly_summary(
    business_id: str,
    period_key: str,
    store: Annotated[AccumulatorStore, Depends(get_accumulator_store)],
) -> MonthlySummaryResponse:
    """Totals booked for a business in one month.

    Raises:
        NotFoundError: If nothing was booked for that month.
    """
    year = int(period_key[:4]) if period_key[:4].isdigit() else None
    rows = [
        acc
        for acc in await store.list_for_business(business_id, year)
        if acc.period_key == period_key
    ]
    if not rows:
        msg = f"No accumulators for {business_id} in {period_key}"
        raise NotFoundError(msg, context={"business_id": business_id})

    summary = summarize_month(rows)
    return MonthlySummaryResponse(
        business_id=business_id,
        period_key=period_key,
        total_documents=summary.total_documents,
        total_operaciones=summary.total_operaciones,
        total_iva=summary.total_iva,
        total_retenciones=summary.total_retenciones,
    )
