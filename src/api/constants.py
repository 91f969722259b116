"""API-related constants."""

HTTP_500_INTERNAL_SERVER_ERROR = 500

CORRELATION_ID_HEADER = "X-Correlation-ID"

API_V1_PREFIX = "/api/v1"
