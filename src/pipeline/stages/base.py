"""Shared pieces of the stage functions."""

from collections.abc import Awaitable, Callable
from typing import Any

from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.enums import DteStatus, StageErrorCode
from src.pipeline.state import RunState, StatePatch

type Stage = Callable[[RunState, PipelineDependencies], Awaitable[StatePatch]]


def failure(
    code: StageErrorCode,
    message: str,
    *,
    can_retry: bool,
    progress: int,
    **fields: Any,
) -> StatePatch:
    """Patch that ends the run as failed with a stable error code.

    Extra keyword arguments are set on the patch as well.
    """
    return StatePatch(
        status=DteStatus.FAILED,
        error_code=code.value,
        error_message=message,
        can_retry=can_retry,
        progress_percentage=progress,
        **fields,
    )
