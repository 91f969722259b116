"""Client for the tax authority's document reception service.

Transport problems are reported as data, not raised: a network failure or
timeout comes back as a ``COM-ERR`` error and a 5xx answer as ``HTTP-<status>``
so the transmission stage can tell them apart from rejections.
"""

import base64
import binascii
from typing import Any

import httpx
import orjson
from loguru import logger

from src.core.config import TransmissionConfig
from src.core.constants import COMMUNICATION_ERROR_CODE, HTTP_ERROR_CODE_PREFIX
from src.core.exceptions import TransmissionServiceError
from src.pipeline.collaborators import (
    ACCEPTED_WITH_OBSERVATIONS,
    PROCESSED,
    AuthorityError,
    TransmissionResult,
)
from src.pipeline.enums import Environment

ACCEPTED_STATES = frozenset({PROCESSED, ACCEPTED_WITH_OBSERVATIONS})
RECEPTION_API_VERSION = 2


def decode_jws_payload(signature: str) -> dict[str, Any]:
    """Return the JSON payload of a compact JWS without verifying it.

    Raises:
        TransmissionServiceError: If the envelope is not a compact JWS.
    """
    parts = signature.split(".")
    if len(parts) != 3:  # noqa: PLR2004 - header.payload.signature
        msg = "Signature is not a compact JWS"
        raise TransmissionServiceError(msg)
    segment = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = orjson.loads(base64.urlsafe_b64decode(segment))
    except (binascii.Error, orjson.JSONDecodeError) as e:
        msg = "JWS payload is not valid JSON"
        raise TransmissionServiceError(msg, cause=e) from e
    if not isinstance(payload, dict):
        msg = "JWS payload is not a JSON object"
        raise TransmissionServiceError(msg)
    return payload


def _communication_error(description: str) -> TransmissionResult:
    return TransmissionResult(
        success=False,
        errors=[AuthorityError(code=COMMUNICATION_ERROR_CODE, description=description)],
        message=description,
    )


def parse_reception_response(body: dict[str, Any]) -> TransmissionResult:
    """Translate the authority's answer into a ``TransmissionResult``."""
    estado = body.get("estado")
    observations = [str(item) for item in body.get("observaciones") or []]
    errors = []
    if code := body.get("codigoMsg"):
        errors.append(
            AuthorityError(code=str(code), description=body.get("descripcionMsg") or "")
        )

    accepted = estado in ACCEPTED_STATES
    if accepted and observations and estado == PROCESSED:
        estado = ACCEPTED_WITH_OBSERVATIONS

    return TransmissionResult(
        success=accepted,
        estado=estado,
        receipt_stamp=body.get("selloRecibido"),
        receipt_timestamp=body.get("fhProcesamiento"),
        errors=errors if not accepted or code == "002" else [],
        observations=observations,
        message=body.get("descripcionMsg"),
    )


class HttpTransmitter:
    """Posts signed documents to the authority's reception endpoint.

    Args:
        config: Endpoint URLs, timeout and optional bearer token.
        client: Optional preconfigured client (tests pass a mock transport).
    """

    def __init__(
        self, config: TransmissionConfig, client: httpx.AsyncClient | None = None
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds)
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def url_for(self, environment: Environment) -> str:
        if environment == Environment.PRODUCTION:
            return self.config.production_url
        return self.config.sandbox_url

    async def transmit(
        self, signature: str, environment: Environment
    ) -> TransmissionResult:
        ident = decode_jws_payload(signature).get("identificacion") or {}
        codigo = ident.get("codigoGeneracion")
        request = {
            "ambiente": environment.value,
            "idEnvio": 1,
            "version": ident.get("version", RECEPTION_API_VERSION),
            "tipoDte": ident.get("tipoDte"),
            "documento": signature,
            "codigoGeneracion": codigo,
        }
        headers = {}
        if self.config.auth_token is not None:
            headers["Authorization"] = self.config.auth_token.get_secret_value()

        try:
            response = await self._client.post(
                self.url_for(environment), json=request, headers=headers
            )
        except httpx.TimeoutException:
            logger.warning("Authority timed out", codigo_generacion=codigo)
            return _communication_error(
                f"Timeout after {self.config.timeout_seconds:.0f}s"
            )
        except httpx.TransportError as e:
            logger.warning("Authority unreachable: {}", type(e).__name__)
            return _communication_error(f"Connection failed: {type(e).__name__}")

        if response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR:
            return TransmissionResult(
                success=False,
                errors=[
                    AuthorityError(
                        code=f"{HTTP_ERROR_CODE_PREFIX}{response.status_code}",
                        description=response.reason_phrase,
                    )
                ],
                message=f"HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as e:
            msg = f"Authority answered HTTP {response.status_code} without JSON"
            raise TransmissionServiceError(
                msg, context={"status_code": response.status_code}, cause=e
            ) from e

        result = parse_reception_response(body)
        logger.info(
            "Authority answered",
            codigo_generacion=codigo,
            estado=result.estado,
            status_code=response.status_code,
        )
        return result
