"""Collaborators and knobs handed to every stage."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from src.core.config import Settings, get_settings
from src.core.types import DocumentPayload
from src.pipeline.collaborators import (
    AccumulatorStore,
    CredentialStore,
    DocumentStore,
    Signer,
    Transmitter,
)
from src.pipeline.documents import DocumentValidation, now_in, validate_document

type Clock = Callable[[], datetime]
type Sleeper = Callable[[float], Awaitable[None]]
type DocumentValidator = Callable[[DocumentPayload], DocumentValidation]


@dataclass
class PipelineDependencies:
    """Everything a stage may touch outside the run state.

    Attributes:
        credentials: Signing credential lookup.
        documents: Processed document persistence.
        accumulators: Monthly tax accumulator persistence.
        signer: External signing service.
        transmitter: Tax authority reception service.
        settings: Application settings; defaults to the cached instance.
        clock: Wall-clock source in the business timezone.
        sleep: Awaitable delay used between signer wake attempts.
        validator: Document validator used by validation and contingency.
    """

    credentials: CredentialStore
    documents: DocumentStore
    accumulators: AccumulatorStore
    signer: Signer
    transmitter: Transmitter
    settings: Settings = field(default_factory=get_settings)
    clock: Clock | None = None
    sleep: Sleeper = asyncio.sleep
    validator: DocumentValidator = validate_document

    def now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return now_in(self.settings.pipeline_config.timezone)

    async def bounded[T](self, awaitable: Awaitable[T]) -> T:
        """Await a collaborator call under the configured fixed timeout.

        Raises:
            TimeoutError: If the call does not finish in time.
        """
        async with asyncio.timeout(
            self.settings.pipeline_config.collaborator_timeout_seconds
        ):
            return await awaitable
