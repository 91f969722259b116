"""Run state threaded through the pipeline and the patches stages return.

A ``RunState`` is immutable: stages read it and answer with a ``StatePatch``
holding only the fields they change. The orchestrator applies the patch with
``apply_patch`` which re-validates the merged state, so the state invariants
below hold after every stage:

- a signature is present exactly when ``is_signed`` is true;
- ``codigo_generacion`` never changes once assigned;
- the retry counter never exceeds the transmission retry cap.
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from src.core.constants import MAX_TRANSMISSION_RETRIES
from src.core.exceptions import PipelineError
from src.core.types import DocumentPayload
from src.pipeline.collaborators import TaxAccumulator, TransmissionResult
from src.pipeline.enums import DteStatus, Environment, FlowType

TERMINAL_STATUSES = frozenset(
    {DteStatus.COMPLETED, DteStatus.FAILED, DteStatus.CONTINGENCY}
)


class RunState(BaseModel):
    """Everything known about one document's trip through the pipeline."""

    model_config = ConfigDict(frozen=True)

    # Inputs
    dte: DocumentPayload | None = None
    raw_input: Any = None
    password: SecretStr | None = None
    api_token: SecretStr | None = None
    ambiente: Environment = Environment.SANDBOX
    flow_type: FlowType = FlowType.EMISSION

    # Identification
    codigo_generacion: str | None = None
    business_id: str | None = None
    device_id: str | None = None

    # Stage results
    status: DteStatus = DteStatus.DRAFT
    is_valid: bool = False
    validation_errors: list[str] = Field(default_factory=list)
    is_signed: bool = False
    signature: str | None = None
    is_transmitted: bool = False
    authority_response: TransmissionResult | None = None
    is_offline: bool = False
    contingency_reason: str | None = None
    tax_impact: TaxAccumulator | None = None
    retry_count: int = Field(default=0, ge=0, le=MAX_TRANSMISSION_RETRIES)

    # Progress reporting
    progress_percentage: int = Field(default=0, ge=0, le=100)
    current_step: str = "start"
    estimated_time: int = Field(default=60, ge=0)

    # Failure details
    error_code: str | None = None
    error_message: str | None = None
    can_retry: bool = True

    @model_validator(mode="after")
    def _signature_matches_flag(self) -> Self:
        if (self.signature is not None) != self.is_signed:
            msg = "signature must be present if and only if is_signed is true"
            raise ValueError(msg)
        return self

    @property
    def is_terminal(self) -> bool:
        """Whether the run has reached a status no stage moves it out of."""
        return self.status in TERMINAL_STATUSES

    def log_summary(self) -> dict[str, Any]:
        """Non-sensitive fields worth attaching to log lines."""
        return {
            "codigo_generacion": self.codigo_generacion,
            "business_id": self.business_id,
            "flow_type": self.flow_type.value,
            "status": self.status.value,
            "retry_count": self.retry_count,
            "error_code": self.error_code,
        }


class StatePatch(BaseModel):
    """Partial update returned by a stage; only explicitly set fields apply."""

    model_config = ConfigDict(extra="forbid")

    dte: DocumentPayload | None = None
    password: SecretStr | None = None
    api_token: SecretStr | None = None
    codigo_generacion: str | None = None
    status: DteStatus | None = None
    is_valid: bool | None = None
    validation_errors: list[str] | None = None
    is_signed: bool | None = None
    signature: str | None = None
    is_transmitted: bool | None = None
    authority_response: TransmissionResult | None = None
    is_offline: bool | None = None
    contingency_reason: str | None = None
    tax_impact: TaxAccumulator | None = None
    retry_count: int | None = None
    progress_percentage: int | None = None
    current_step: str | None = None
    estimated_time: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    can_retry: bool | None = None


def apply_patch(state: RunState, patch: StatePatch) -> RunState:
    """Merge a stage patch into the run state.

    Args:
        state: Current run state.
        patch: Fields returned by the stage.

    Returns:
        RunState: A new, re-validated state.

    Raises:
        PipelineError: If the patch tries to replace an assigned generation code
            or the merged state violates a state invariant.
    """
    updates = {name: getattr(patch, name) for name in patch.model_fields_set}

    new_code = updates.get("codigo_generacion")
    if (
        state.codigo_generacion is not None
        and new_code is not None
        and new_code != state.codigo_generacion
    ):
        msg = "codigo_generacion is immutable once assigned"
        raise PipelineError(
            msg,
            context={"current": state.codigo_generacion, "attempted": new_code},
        )

    data = {name: getattr(state, name) for name in RunState.model_fields}
    data.update(updates)
    try:
        return RunState.model_validate(data)
    except ValueError as e:
        msg = f"Stage patch produced an invalid run state: {e}"
        raise PipelineError(msg, context=state.log_summary(), cause=e) from e
