"""Pipeline orchestrator.

``DtePipeline`` builds the initial run state from the caller's fields, then
walks the transition table in ``src.pipeline.machine``: run the stage for
the current step, merge its patch, look up the next step. Each stage runs in
its own trace span and every log line of the run carries the document's
generation code.
"""

from typing import Any

from loguru import logger
from pydantic import SecretStr

from src.core.exceptions import PipelineError
from src.core.observability import trace_operation
from src.core.types import DocumentPayload
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import identification
from src.pipeline.enums import DteStatus, Environment, FlowType, StageErrorCode
from src.pipeline.machine import (
    STAGES,
    SYSTEM_ERROR_CODES,
    Step,
    first_step,
    initial_status,
    next_step,
)
from src.pipeline.responses import ProcessResponse, build_process_response
from src.pipeline.stages.base import failure
from src.pipeline.state import RunState, StatePatch, apply_patch


def _fail_run(state: RunState, error: PipelineError) -> RunState:
    logger.opt(exception=error).error("Pipeline run aborted: {}", error.message)
    return state.model_copy(
        update={
            "status": DteStatus.FAILED,
            "error_code": StageErrorCode.PIPELINE_TRANSITION.value,
            "error_message": error.message,
            "can_retry": False,
        }
    )


class DtePipeline:
    """Runs documents through validation, signing, transmission and booking.

    The pipeline keeps no state between runs; everything persistent goes
    through the collaborators in ``deps``.

    Args:
        deps: Stores, service clients and settings used by the stages.
    """

    def __init__(self, deps: PipelineDependencies) -> None:
        self.deps = deps

    def initial_state(
        self,
        *,
        dte: DocumentPayload | None = None,
        raw_input: Any = None,
        password: str | None = None,
        ambiente: Environment | str = Environment.SANDBOX,
        flow_type: FlowType | str = FlowType.EMISSION,
        business_id: str | None = None,
        device_id: str | None = None,
        codigo_generacion: str | None = None,
    ) -> RunState:
        """Merge the caller's fields over the run defaults."""
        flow = FlowType(flow_type)
        if codigo_generacion is None and dte:
            codigo_generacion = identification(dte).get("codigoGeneracion")

        return RunState(
            dte=dte,
            raw_input=raw_input,
            password=SecretStr(password) if password else None,
            ambiente=Environment(ambiente),
            flow_type=flow,
            business_id=business_id,
            device_id=device_id,
            codigo_generacion=codigo_generacion,
            status=initial_status(flow),
        )

    async def _run_stage(self, step: Step, state: RunState) -> StatePatch:
        stage = STAGES[step]
        with trace_operation(
            f"dte.stage.{step.value}",
            codigo_generacion=state.codigo_generacion,
            business_id=state.business_id,
            retry_count=state.retry_count,
        ) as span:
            try:
                patch = await stage(state, self.deps)
            except Exception as e:
                span.record_exception(e)
                if step == Step.TAX:
                    logger.exception("Tax stage raised", stage=step.value)
                    return StatePatch()
                logger.exception("Stage raised unexpectedly", stage=step.value)
                return failure(
                    SYSTEM_ERROR_CODES[step],
                    f"Error inesperado en {step.value}: {e}",
                    can_retry=True,
                    progress=state.progress_percentage,
                )
            if patch.status is not None:
                span.set_attribute("dte.status", patch.status.value)
            return patch

    async def run_state(self, state: RunState) -> RunState:
        """Drive an already-built run state to a terminal outcome.

        Args:
            state: Initial run state.

        Returns:
            RunState: The state after the last stage.
        """
        max_steps = self.deps.settings.pipeline_config.max_steps
        step = first_step(state.flow_type)

        with logger.contextualize(
            codigo_generacion=state.codigo_generacion,
            business_id=state.business_id,
            flow_type=state.flow_type.value,
        ):
            logger.info("Pipeline run started", step=step.value)
            steps_taken = 0
            while step != Step.END:
                if steps_taken == max_steps:
                    state = _fail_run(
                        state,
                        PipelineError(
                            f"Run exceeded {max_steps} steps",
                            context=state.log_summary(),
                        ),
                    )
                    break
                steps_taken += 1
                patch = await self._run_stage(step, state)
                try:
                    state = apply_patch(state, patch)
                    step = next_step(step, state.status)
                except PipelineError as e:
                    state = _fail_run(state, e)
                    break

            logger.info("Pipeline run finished", **state.log_summary())
        return state

    async def run(self, **fields: Any) -> RunState:
        """Build the initial state from ``fields`` and run it."""
        return await self.run_state(self.initial_state(**fields))

    async def process(self, **fields: Any) -> ProcessResponse:
        """Run a document and map the outcome to the caller envelope."""
        state = await self.run(**fields)
        return build_process_response(state)
