"""Unit tests for the tax authority client."""

import httpx
import orjson
import pytest

from src.core.config import TransmissionConfig
from src.core.exceptions import TransmissionServiceError
from src.infrastructure.clients.transmission import (
    HttpTransmitter,
    decode_jws_payload,
    parse_reception_response,
)
from src.pipeline.collaborators import ACCEPTED_WITH_OBSERVATIONS, PROCESSED
from src.pipeline.enums import Environment
from tests.fakes import jws_for
from tests.samples import CODIGO, make_dte

SIGNATURE = jws_for(make_dte())


def _transmitter(handler, **config: object) -> HttpTransmitter:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransmitter(TransmissionConfig(**config), client=client)


@pytest.mark.unit
class TestDecodeJwsPayload:
    def test_decodes_payload(self) -> None:
        payload = decode_jws_payload(SIGNATURE)

        assert payload["identificacion"]["codigoGeneracion"] == CODIGO

    @pytest.mark.parametrize("signature", ["not-a-jws", "a.!!!.c", "a.W10.c"])
    def test_rejects_malformed(self, signature: str) -> None:
        with pytest.raises(TransmissionServiceError):
            decode_jws_payload(signature)


@pytest.mark.unit
class TestParseReceptionResponse:
    def test_processed(self) -> None:
        result = parse_reception_response(
            {
                "estado": "PROCESADO",
                "selloRecibido": "SELLO",
                "fhProcesamiento": "14/03/2025 10:15:30",
                "codigoMsg": "001",
                "descripcionMsg": "RECIBIDO",
            }
        )

        assert result.success
        assert result.receipt_stamp == "SELLO"
        assert result.errors == []

    def test_observations_upgrade_state(self) -> None:
        result = parse_reception_response(
            {"estado": "PROCESADO", "observaciones": ["[resumen] redondeo"]}
        )

        assert result.success
        assert result.estado == ACCEPTED_WITH_OBSERVATIONS
        assert result.observations == ["[resumen] redondeo"]

    def test_rejection_carries_code(self) -> None:
        result = parse_reception_response(
            {"estado": "RECHAZADO", "codigoMsg": "004", "descripcionMsg": "YA EXISTE"}
        )

        assert not result.success
        assert [(e.code, e.description) for e in result.errors] == [("004", "YA EXISTE")]


@pytest.mark.unit
class TestTransmit:
    async def test_posts_reception_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"estado": PROCESSED, "selloRecibido": "S"})

        transmitter = _transmitter(handler, auth_token="Bearer mh")

        result = await transmitter.transmit(SIGNATURE, Environment.SANDBOX)

        assert result.success
        body = orjson.loads(seen[0].content)
        assert body["ambiente"] == "00"
        assert body["tipoDte"] == "01"
        assert body["codigoGeneracion"] == CODIGO
        assert body["documento"] == SIGNATURE
        assert seen[0].headers["Authorization"] == "Bearer mh"
        assert str(seen[0].url) == transmitter.config.sandbox_url

    def test_url_for_production(self) -> None:
        transmitter = _transmitter(lambda _: httpx.Response(200))

        assert transmitter.url_for(Environment.PRODUCTION) == (
            transmitter.config.production_url
        )

    async def test_timeout_is_communication_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        result = await _transmitter(handler).transmit(SIGNATURE, Environment.SANDBOX)

        assert not result.success
        assert result.errors[0].code == "COM-ERR"
        assert result.estado is None

    async def test_connection_error_is_communication_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _transmitter(handler).transmit(SIGNATURE, Environment.SANDBOX)

        assert result.errors[0].code == "COM-ERR"

    async def test_server_error_is_reported_with_status(self) -> None:
        result = await _transmitter(lambda _: httpx.Response(503)).transmit(
            SIGNATURE, Environment.SANDBOX
        )

        assert not result.success
        assert result.errors[0].code == "HTTP-503"

    async def test_non_json_answer_raises(self) -> None:
        transmitter = _transmitter(lambda _: httpx.Response(400, text="<html>"))

        with pytest.raises(TransmissionServiceError):
            await transmitter.transmit(SIGNATURE, Environment.SANDBOX)
