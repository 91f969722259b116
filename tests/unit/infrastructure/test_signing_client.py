"""Unit tests for the signing service client."""

import httpx
import pytest

from src.core.config import SigningConfig
from src.core.exceptions import SigningServiceError
from src.infrastructure.clients.signing import HttpSigner

DOCUMENT = {"identificacion": {"codigoGeneracion": "ABC"}}


def _signer(handler) -> HttpSigner:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSigner(SigningConfig(service_url="http://signer/firma"), client=client)


@pytest.mark.unit
class TestSign:
    async def test_returns_jws(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "jws": "a.b.c"})

        signer = _signer(handler)

        jws = await signer.sign("0614", "clave", DOCUMENT, api_token="tok")

        assert jws == "a.b.c"
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert str(seen[0].url) == "http://signer/firma"

    async def test_accepts_status_body_answer(self) -> None:
        signer = _signer(
            lambda _: httpx.Response(200, json={"status": "OK", "body": "x.y.z"})
        )

        assert await signer.sign("0614", "clave", DOCUMENT) == "x.y.z"

    async def test_no_authorization_without_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"jws": "a.b.c"})

        await _signer(handler).sign("0614", "clave", DOCUMENT)

        assert "Authorization" not in seen[0].headers

    async def test_http_error_raises(self) -> None:
        signer = _signer(lambda _: httpx.Response(502, text="bad gateway"))

        with pytest.raises(SigningServiceError) as exc_info:
            await signer.sign("0614", "clave", DOCUMENT)

        assert exc_info.value.context == {"status_code": 502}

    async def test_answer_without_signature_raises(self) -> None:
        signer = _signer(
            lambda _: httpx.Response(200, json={"status": "ERROR", "body": "clave invalida"})
        )

        with pytest.raises(SigningServiceError, match="clave invalida"):
            await signer.sign("0614", "clave", DOCUMENT)

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SigningServiceError, match="ConnectError"):
            await _signer(handler).sign("0614", "clave", DOCUMENT)


@pytest.mark.unit
class TestHealthCheck:
    async def test_healthy(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200)

        assert await _signer(handler).health_check()
        assert seen == ["http://signer/health"]

    async def test_unhealthy_status(self) -> None:
        assert not await _signer(lambda _: httpx.Response(503)).health_check()

    async def test_transport_error_is_unhealthy(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert not await _signer(handler).health_check()
