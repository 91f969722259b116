"""Unit tests for the transmission stage."""

import pytest

from src.pipeline.enums import DocumentState, DteStatus, StageErrorCode
from src.pipeline.stages import transmit
from src.pipeline.state import RunState
from tests.fakes import (
    InMemoryDocumentStore,
    ScriptedTransmitter,
    accepted,
    communication_error,
    jws_for,
    make_deps,
    rejected,
)
from tests.samples import CODIGO, ISSUER_NIT, make_dte


def _signed(**fields: object) -> RunState:
    document = make_dte()
    defaults: dict[str, object] = {
        "dte": document,
        "is_valid": True,
        "is_signed": True,
        "signature": jws_for(document),
        "status": DteStatus.TRANSMITTING,
        "codigo_generacion": CODIGO,
        "business_id": ISSUER_NIT,
    }
    return RunState(**(defaults | fields))


@pytest.mark.unit
class TestTransmitStage:
    async def test_accepted_document_is_stored(self) -> None:
        documents = InMemoryDocumentStore()
        deps = make_deps(documents=documents, transmitter=ScriptedTransmitter(accepted()))

        patch = await transmit(_signed(), deps)

        assert patch.status == DteStatus.COMPLETED
        assert patch.is_transmitted is True
        assert patch.progress_percentage == 90
        assert patch.authority_response is not None
        record = documents.records[CODIGO]
        assert record.estado == DocumentState.PROCESSED
        assert record.sello_recibido == "2025A1B2C3D4E5F6"
        assert record.tipo_dte == "01"
        assert record.issuer_nit == ISSUER_NIT

    async def test_accepted_without_business_is_not_stored(self) -> None:
        documents = InMemoryDocumentStore()

        patch = await transmit(_signed(business_id=None), make_deps(documents=documents))

        assert patch.status == DteStatus.COMPLETED
        assert documents.records == {}

    async def test_missing_signature(self) -> None:
        patch = await transmit(RunState(dte=make_dte()), make_deps())

        assert patch.error_code == StageErrorCode.TRANSMIT_NO_SIGNATURE.value
        assert patch.can_retry is True

    @pytest.mark.parametrize("retry_count", [0, 1])
    async def test_communication_failure_is_retried(self, retry_count: int) -> None:
        deps = make_deps(transmitter=ScriptedTransmitter(communication_error()))

        patch = await transmit(_signed(retry_count=retry_count), deps)

        assert patch.status == DteStatus.TRANSMITTING
        assert patch.retry_count == retry_count + 1
        assert patch.progress_percentage == 60

    async def test_communication_failure_at_cap_escalates(self) -> None:
        deps = make_deps(transmitter=ScriptedTransmitter(communication_error()))

        patch = await transmit(_signed(retry_count=2), deps)

        assert patch.status == DteStatus.CONTINGENCY
        assert patch.is_offline is True
        assert patch.contingency_reason == "Falla de comunicación con MH"
        assert patch.error_code == StageErrorCode.TRANSMIT_COMMUNICATION.value
        assert patch.can_retry is True
        assert patch.progress_percentage == 70
        assert "retry_count" not in patch.model_fields_set

    async def test_server_error_counts_as_communication_failure(self) -> None:
        deps = make_deps(transmitter=ScriptedTransmitter(rejected("HTTP-503")))

        patch = await transmit(_signed(), deps)

        assert patch.status == DteStatus.TRANSMITTING

    async def test_timeout_counts_as_communication_failure(self) -> None:
        deps = make_deps(transmitter=ScriptedTransmitter(TimeoutError()))

        patch = await transmit(_signed(), deps)

        assert patch.status == DteStatus.TRANSMITTING
        assert patch.retry_count == 1

    async def test_rejection_is_not_retryable(self) -> None:
        deps = make_deps(
            transmitter=ScriptedTransmitter(rejected("009", "NIT no existe"))
        )

        patch = await transmit(_signed(), deps)

        assert patch.status == DteStatus.FAILED
        assert patch.error_code == StageErrorCode.TRANSMIT_MH_VALIDATION.value
        assert patch.can_retry is False
        assert patch.error_message == "MH [009]: NIT no existe"
        assert patch.authority_response is not None

    async def test_unexpected_error_is_a_system_failure(self) -> None:
        deps = make_deps(transmitter=ScriptedTransmitter(RuntimeError("boom")))

        patch = await transmit(_signed(), deps)

        assert patch.error_code == StageErrorCode.TRANSMIT_SYSTEM.value
        assert patch.can_retry is True

    async def test_store_failure_after_acceptance_is_a_system_failure(self) -> None:
        deps = make_deps(documents=InMemoryDocumentStore(fail=True))

        patch = await transmit(_signed(), deps)

        assert patch.error_code == StageErrorCode.TRANSMIT_SYSTEM.value
