"""Request context middleware: correlation IDs and access logging.

The correlation ID is taken from the ``X-Correlation-ID`` header or
generated, stored in a contextvar for the duration of the request, bound to
every Loguru record and echoed back on the response.
"""

import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.api.constants import CORRELATION_ID_HEADER
from src.core.constants import MILLISECONDS_PER_SECOND
from src.core.context import RequestContext, generate_correlation_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set up the correlation ID and log one line per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = (
            request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        )
        RequestContext.set_correlation_id(correlation_id)

        with logger.contextualize(correlation_id=correlation_id):
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * MILLISECONDS_PER_SECOND

            logger.info(
                "{} {} -> {}",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
