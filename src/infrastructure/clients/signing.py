"""Client for the external signing service."""

from typing import Any

import httpx
from loguru import logger

from src.core.config import SigningConfig
from src.core.exceptions import SigningServiceError
from src.core.types import DocumentPayload


class HttpSigner:
    """Signs documents by posting them to the signing service.

    The service answers ``{"success": true, "jws": "..."}``; the reference
    signer's ``{"status": "OK", "body": "..."}`` form is accepted too.

    Args:
        config: Signing service URLs and timeouts.
        client: Optional preconfigured client (tests pass a mock transport).
    """

    def __init__(
        self, config: SigningConfig, client: httpx.AsyncClient | None = None
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds)
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(
                self.config.resolved_health_url,
                timeout=self.config.wake_timeout_seconds,
            )
        except httpx.HTTPError as e:
            logger.debug("Signer health check failed: {}", type(e).__name__)
            return False
        return response.status_code == httpx.codes.OK

    async def sign(
        self,
        nit: str,
        password: str,
        document: DocumentPayload,
        api_token: str | None = None,
    ) -> str:
        """Return the JWS envelope for ``document``.

        Raises:
            SigningServiceError: On transport failure, non-2xx status or an
                answer without a signature.
        """
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        payload = {"nit": nit, "passwordPri": password, "dteJson": document}

        logger.info("Requesting signature", nit=nit)
        try:
            response = await self._client.post(
                self.config.service_url, json=payload, headers=headers
            )
            response.raise_for_status()
            body: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as e:
            msg = f"Signing service answered HTTP {e.response.status_code}"
            raise SigningServiceError(
                msg, context={"status_code": e.response.status_code}, cause=e
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Signing service request failed: {type(e).__name__}"
            raise SigningServiceError(msg, cause=e) from e

        jws = body.get("jws")
        if jws is None and body.get("status") == "OK":
            jws = body.get("body")
        if not isinstance(jws, str) or not jws:
            error = body.get("error") or body.get("body") or "no signature returned"
            msg = f"Signing failed: {error}"
            raise SigningServiceError(msg)
        return jws
