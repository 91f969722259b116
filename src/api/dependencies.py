"""FastAPI dependencies wiring the pipeline to its SQL and HTTP collaborators."""

from typing import Annotated

from fastapi import Depends, Request

from src.core.config import Settings
from src.infrastructure.clients import HttpSigner, HttpTransmitter
from src.infrastructure.stores import (
    SqlAccumulatorStore,
    SqlCredentialStore,
    SqlDocumentStore,
)
from src.pipeline.collaborators import AccumulatorStore
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.orchestrator import DtePipeline


def build_pipeline(settings: Settings) -> DtePipeline:
    """Create a pipeline backed by the database and the HTTP services."""
    return DtePipeline(
        PipelineDependencies(
            credentials=SqlCredentialStore(),
            documents=SqlDocumentStore(),
            accumulators=SqlAccumulatorStore(),
            signer=HttpSigner(settings.signing_config),
            transmitter=HttpTransmitter(settings.transmission_config),
            settings=settings,
        )
    )


async def close_pipeline(pipeline: DtePipeline) -> None:
    """Close the HTTP clients owned by a pipeline built with ``build_pipeline``."""
    for client in (pipeline.deps.signer, pipeline.deps.transmitter):
        if isinstance(client, HttpSigner | HttpTransmitter):
            await client.aclose()


def get_pipeline(request: Request) -> DtePipeline:
    """Return the pipeline created at startup."""
    pipeline: DtePipeline = request.app.state.pipeline
    return pipeline


def get_accumulator_store(
    pipeline: Annotated[DtePipeline, Depends(get_pipeline)],
) -> AccumulatorStore:
    return pipeline.deps.accumulators
