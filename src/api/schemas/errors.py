"""Error body returned for exceptions raised outside a pipeline run.

Pipeline outcomes use the caller envelope from ``src.pipeline.responses``;
``ErrorResponse`` only covers malformed requests, unknown routes, store
outages and bugs.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServiceInfo(BaseModel):
    """Identifies the service instance that produced the error."""

    name: str = Field(..., examples=["DTEFlow"])
    version: str = Field(..., examples=["0.4.0"])
    environment: str = Field(
        ..., examples=["development", "staging", "production"]
    )


class ErrorResponse(BaseModel):
    """Standard error body for the HTTP adapter."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error_code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": {
                        "validation_errors": {"ambiente": ["Input should be '00' or '01'"]}
                    },
                    "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
                    "request_id": "req-660e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2025-03-14T12:00:00+00:00",
                    "severity": "LOW",
                    "service_info": {
                        "name": "DTEFlow",
                        "version": "0.4.0",
                        "environment": "production",
                    },
                },
                {
                    "error_code": "STORAGE_ERROR",
                    "message": "SqlAccumulatorStore.list_for_business failed: "
                    "OperationalError",
                    "timestamp": "2025-03-14T12:00:01+00:00",
                    "severity": "MEDIUM",
                },
            ]
        }
    )

    error_code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["VALIDATION_ERROR", "NOT_FOUND", "STORAGE_ERROR"],
    )
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional details such as field-level validation errors",
    )
    correlation_id: str | None = Field(
        default=None,
        description="Correlation ID of the request, echoed in X-Correlation-ID",
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    severity: str | None = Field(
        default=None, examples=["LOW", "MEDIUM", "HIGH", "CRITICAL"]
    )
    service_info: ServiceInfo | None = None
    request_id: str | None = Field(
        default=None,
        description="Identifier of this single error occurrence",
        examples=["req-550e8400-e29b-41d4-a716-446655440000"],
    )
    debug_info: dict[str, Any] | None = Field(
        default=None,
        description="Stack trace and context, development environment only",
    )
