"""HTTP-level tests for the DTE endpoints.

The pipeline dependency is overridden with in-memory collaborators, so no
database or external service is needed.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pytest_mock import MockerFixture

from src.api.dependencies import get_pipeline
from src.api.main import create_app
from src.pipeline.collaborators import TaxAccumulator
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.orchestrator import DtePipeline
from tests.fakes import (
    InMemoryAccumulatorStore,
    ScriptedTransmitter,
    active_credentials,
    communication_error,
    make_deps,
    rejected,
)
from tests.samples import CODIGO, ISSUER_NIT, make_dte


@asynccontextmanager
async def serve(deps: PipelineDependencies) -> AsyncIterator[AsyncClient]:
    app: FastAPI = create_app()
    app.dependency_overrides[get_pipeline] = lambda: DtePipeline(deps)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


def _body(**fields: object) -> dict[str, object]:
    return {"dte": make_dte(), "businessId": ISSUER_NIT, "ambiente": "00"} | fields


@pytest.mark.integration
class TestProcessEndpoint:
    async def test_accepted_document(self) -> None:
        deps = make_deps(credentials=active_credentials(ISSUER_NIT))

        async with serve(deps) as client:
            response = await client.post("/api/v1/dte/process", json=_body())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["codigoGeneracion"] == CODIGO
        assert body["data"]["selloRecepcion"] == "2025A1B2C3D4E5F6"
        assert "error" not in body

    async def test_rejection_is_reported_in_the_envelope(self) -> None:
        deps = make_deps(
            credentials=active_credentials(ISSUER_NIT),
            transmitter=ScriptedTransmitter(rejected("004", "Ya existe")),
        )

        async with serve(deps) as client:
            response = await client.post("/api/v1/dte/process", json=_body())

        assert response.status_code == 200
        error = response.json()["error"]
        assert response.json()["success"] is False
        assert error["code"] == "MH_DATA_ALREADY_EXISTS"
        assert error["canRetry"] is False
        assert "userMessage" in error

    async def test_unreachable_authority_ends_in_contingency(self) -> None:
        deps = make_deps(
            credentials=active_credentials(ISSUER_NIT),
            transmitter=ScriptedTransmitter(communication_error()),
        )

        async with serve(deps) as client:
            response = await client.post("/api/v1/dte/process", json=_body())

        body = response.json()
        assert response.status_code == 200
        assert body["error"]["code"] == "DTE_IN_CONTINGENCY"
        assert body["data"]["codigoGeneracion"] == CODIGO

    async def test_password_from_request_reaches_the_signer(self) -> None:
        deps = make_deps(credentials=active_credentials(ISSUER_NIT, password="guardada"))

        async with serve(deps) as client:
            await client.post(
                "/api/v1/dte/process", json=_body(passwordPri="de-la-solicitud")
            )

        assert deps.signer.calls[0].password == "de-la-solicitud"

    async def test_unknown_environment_is_rejected(self) -> None:
        async with serve(make_deps()) as client:
            response = await client.post(
                "/api/v1/dte/process", json=_body(ambiente="99")
            )

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "ambiente" in body["details"]["validation_errors"]

    async def test_correlation_id_is_echoed(self) -> None:
        deps = make_deps(credentials=active_credentials(ISSUER_NIT))

        async with serve(deps) as client:
            response = await client.post(
                "/api/v1/dte/process",
                json=_body(),
                headers={"X-Correlation-ID": "corr-123"},
            )

        assert response.headers["X-Correlation-ID"] == "corr-123"


@pytest.mark.integration
class TestMonthlySummaryEndpoint:
    async def test_returns_month_totals(self) -> None:
        accumulators = InMemoryAccumulatorStore()
        accumulators.rows[(ISSUER_NIT, "2025-03", "ALL")] = TaxAccumulator(
            business_id=ISSUER_NIT,
            period_key="2025-03",
            total_iva=Decimal("1.30"),
            total_rete_iva=Decimal("1.00"),
            total_operaciones=Decimal("11.30"),
            cantidad_documentos=1,
        )

        async with serve(make_deps(accumulators=accumulators)) as client:
            response = await client.get(f"/api/v1/tax/{ISSUER_NIT}/2025-03/summary")

        assert response.status_code == 200
        body = response.json()
        assert body["businessId"] == ISSUER_NIT
        assert body["totalDocuments"] == 1
        assert Decimal(str(body["totalIva"])) == Decimal("1.30")
        assert Decimal(str(body["totalRetenciones"])) == Decimal("1.00")

    async def test_unknown_month_is_not_found(self) -> None:
        async with serve(make_deps()) as client:
            response = await client.get(f"/api/v1/tax/{ISSUER_NIT}/2024-01/summary")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


@pytest.mark.integration
class TestServiceEndpoints:
    async def test_info(self) -> None:
        async with serve(make_deps()) as client:
            response = await client.get("/info")

        assert response.json() == {
            "app_name": "DTEFlow",
            "version": "0.4.0",
            "environment": "development",
            "debug": True,
        }

    @pytest.mark.parametrize(
        ("db_result", "status"),
        [((True, None), "healthy"), ((False, "connection refused"), "degraded")],
    )
    async def test_health(
        self, mocker: MockerFixture, db_result: tuple[bool, str | None], status: str
    ) -> None:
        mocker.patch("src.api.main.check_database_connection", return_value=db_result)

        async with serve(make_deps()) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": status, "database": db_result[0]}
