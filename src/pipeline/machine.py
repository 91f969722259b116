"""Transition table of the pipeline state machine.

After a stage's patch is merged, the next step is looked up from the step
that just ran and the resulting status. Every legal move is listed here;
any other pair is a defect and ends the run.
"""

from enum import StrEnum
from typing import Final

from src.core.exceptions import PipelineError
from src.pipeline.enums import DteStatus, FlowType, StageErrorCode
from src.pipeline.stages import (
    contingency,
    receive,
    sign,
    transmit,
    update_accumulator,
    validate,
)
from src.pipeline.stages.base import Stage


class Step(StrEnum):
    VALIDATE = "validate"
    SIGN = "sign"
    TRANSMIT = "transmit"
    CONTINGENCY = "contingency"
    RECEPTION = "reception"
    TAX = "tax"
    END = "end"


TRANSITIONS: Final[dict[tuple[Step, DteStatus], Step]] = {
    (Step.VALIDATE, DteStatus.SIGNING): Step.SIGN,
    (Step.VALIDATE, DteStatus.FAILED): Step.END,
    (Step.SIGN, DteStatus.TRANSMITTING): Step.TRANSMIT,
    (Step.SIGN, DteStatus.FAILED): Step.END,
    (Step.TRANSMIT, DteStatus.COMPLETED): Step.TAX,
    (Step.TRANSMIT, DteStatus.TRANSMITTING): Step.TRANSMIT,
    (Step.TRANSMIT, DteStatus.CONTINGENCY): Step.CONTINGENCY,
    (Step.TRANSMIT, DteStatus.FAILED): Step.END,
    (Step.CONTINGENCY, DteStatus.COMPLETED): Step.TAX,
    (Step.CONTINGENCY, DteStatus.FAILED): Step.END,
    (Step.RECEPTION, DteStatus.COMPLETED): Step.TAX,
    (Step.RECEPTION, DteStatus.FAILED): Step.END,
    (Step.TAX, DteStatus.COMPLETED): Step.END,
}

STAGES: Final[dict[Step, Stage]] = {
    Step.VALIDATE: validate,
    Step.SIGN: sign,
    Step.TRANSMIT: transmit,
    Step.CONTINGENCY: contingency,
    Step.RECEPTION: receive,
    Step.TAX: update_accumulator,
}

# Code recorded when a stage raises instead of returning a failure patch
SYSTEM_ERROR_CODES: Final[dict[Step, StageErrorCode]] = {
    Step.VALIDATE: StageErrorCode.VALIDATION_SYSTEM,
    Step.SIGN: StageErrorCode.SIGN_SERVICE,
    Step.TRANSMIT: StageErrorCode.TRANSMIT_SYSTEM,
    Step.CONTINGENCY: StageErrorCode.CONTINGENCY_SIGN,
    Step.RECEPTION: StageErrorCode.RECEPTION_PARSE,
}


def first_step(flow_type: FlowType) -> Step:
    return Step.RECEPTION if flow_type == FlowType.RECEPTION else Step.VALIDATE


def initial_status(flow_type: FlowType) -> DteStatus:
    if flow_type == FlowType.RECEPTION:
        return DteStatus.PROCESSING_RECEPTION
    return DteStatus.VALIDATING


def next_step(step: Step, status: DteStatus) -> Step:
    """Look up where the run goes after ``step`` left it in ``status``.

    Raises:
        PipelineError: If the pair has no transition.
    """
    try:
        return TRANSITIONS[(step, status)]
    except KeyError:
        msg = f"No transition from step '{step}' with status '{status}'"
        raise PipelineError(
            msg, context={"step": step.value, "status": status.value}
        ) from None
