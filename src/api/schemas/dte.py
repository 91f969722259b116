"""Request and response bodies for the DTE endpoints.

Field names follow the camelCase used by the callers' JSON; the Python side
uses snake_case through pydantic aliases.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.types import DocumentPayload
from src.pipeline.enums import Environment, FlowType


class ProcessRequest(BaseModel):
    """Body of ``POST /api/v1/dte/process``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    dte: DocumentPayload | None = Field(
        default=None,
        description="Document to issue, or the received document when already parsed",
    )
    raw_input: Any = Field(
        default=None,
        description="Received document as a JSON string (reception flow only)",
    )
    password_pri: str | None = Field(
        default=None,
        description="Private key password; overrides the stored credential",
    )
    ambiente: Environment = Field(
        default=Environment.SANDBOX,
        description="Authority environment code",
        examples=["00", "01"],
    )
    flow_type: FlowType = Field(default=FlowType.EMISSION)
    business_id: str | None = Field(
        default=None,
        description="NIT of the business the document belongs to",
        examples=["0614-290186-102-3"],
    )
    device_id: str | None = None
    codigo_generacion: str | None = Field(
        default=None,
        description="Generation code; read from the document when omitted",
        examples=["2E5A1C6B-3F4D-4E8A-9B0C-1D2E3F4A5B6C"],
    )

    def pipeline_fields(self) -> dict[str, Any]:
        """Keyword arguments for ``DtePipeline.process``."""
        return {
            "dte": self.dte,
            "raw_input": self.raw_input,
            "password": self.password_pri,
            "ambiente": self.ambiente,
            "flow_type": self.flow_type,
            "business_id": self.business_id,
            "device_id": self.device_id,
            "codigo_generacion": self.codigo_generacion,
        }


class MonthlySummaryResponse(BaseModel):
    """Totals for one business and month."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    business_id: str
    period_key: str = Field(..., examples=["2025-03"])
    total_documents: int
    total_operaciones: Decimal
    total_iva: Decimal
    total_retenciones: Decimal
