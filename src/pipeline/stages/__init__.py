"""Pipeline stages.

Each stage is an async function taking the current run state and the
pipeline dependencies and returning a ``StatePatch``. Stages report expected
failures on the patch instead of raising.
"""

from src.pipeline.stages.contingency import contingency
from src.pipeline.stages.reception import receive
from src.pipeline.stages.signing import sign
from src.pipeline.stages.tax import update_accumulator
from src.pipeline.stages.transmission import transmit
from src.pipeline.stages.validation import validate

__all__ = [
    "contingency",
    "receive",
    "sign",
    "transmit",
    "update_accumulator",
    "validate",
]
