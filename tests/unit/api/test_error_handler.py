"""Unit tests for the exception-to-HTTP mapping."""

import orjson
import pytest

from src.api.middleware.error_handler import status_code_for
from src.api.schemas.dte import MonthlySummaryResponse
from src.api.utils.responses import ORJSONResponse
from src.core.exceptions import (
    ConfigurationError,
    DteError,
    ErrorCode,
    NotFoundError,
    PipelineError,
    StorageError,
    ValidationError,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (ValidationError("bad"), 400),
        (NotFoundError("missing"), 404),
        (ConfigurationError("no credentials"), 422),
        (StorageError("down"), 502),
        (PipelineError("no transition"), 500),
        (DteError(ErrorCode.INTERNAL_ERROR, "boom"), 500),
    ],
)
def test_status_code_for(error: DteError, status_code: int) -> None:
    assert status_code_for(error) == status_code


@pytest.mark.unit
def test_orjson_response_dumps_models_by_alias() -> None:
    response = ORJSONResponse(
        MonthlySummaryResponse(
            business_id="biz",
            period_key="2025-03",
            total_documents=2,
            total_operaciones="22.60",
            total_iva="2.60",
            total_retenciones="0",
        )
    )

    body = orjson.loads(response.body)

    assert body["businessId"] == "biz"
    assert body["totalIva"] == "2.60"
    assert list(body) == sorted(body)
