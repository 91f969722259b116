"""Unit tests for the reception stage."""

import orjson
import pytest

from src.pipeline.enums import (
    DocumentClass,
    DocumentState,
    DteStatus,
    FlowType,
    StageErrorCode,
)
from src.pipeline.stages import receive
from src.pipeline.state import RunState
from tests.fakes import InMemoryDocumentStore, make_deps
from tests.samples import CODIGO, ISSUER_NIT, RECEIVER_NIT, make_received_ccf


def _reception(**fields: object) -> RunState:
    return RunState(
        flow_type=FlowType.RECEPTION, status=DteStatus.PROCESSING_RECEPTION, **fields
    )


@pytest.mark.unit
class TestReceiveStage:
    async def test_document_given_directly_is_assumed_valid(self) -> None:
        patch = await receive(_reception(dte={"anything": True}), make_deps())

        assert patch.status == DteStatus.COMPLETED
        assert patch.is_valid is True
        assert "dte" not in patch.model_fields_set

    async def test_raw_json_string_is_parsed(self) -> None:
        raw = orjson.dumps(make_received_ccf()).decode()

        patch = await receive(_reception(raw_input=raw), make_deps())

        assert patch.status == DteStatus.COMPLETED
        assert patch.dte == make_received_ccf()
        assert patch.codigo_generacion == CODIGO

    async def test_raw_bytes_are_parsed(self) -> None:
        patch = await receive(
            _reception(raw_input=orjson.dumps(make_received_ccf())), make_deps()
        )

        assert patch.status == DteStatus.COMPLETED

    async def test_raw_object_is_taken_as_is(self) -> None:
        patch = await receive(_reception(raw_input=make_received_ccf()), make_deps())

        assert patch.dte == make_received_ccf()

    async def test_existing_generation_code_is_kept(self) -> None:
        raw = orjson.dumps(make_received_ccf()).decode()

        patch = await receive(
            _reception(raw_input=raw, codigo_generacion="OTHER"), make_deps()
        )

        assert "codigo_generacion" not in patch.model_fields_set

    @pytest.mark.parametrize("raw_input", [None, ""])
    async def test_nothing_received(self, raw_input: object) -> None:
        patch = await receive(_reception(raw_input=raw_input), make_deps())

        assert patch.status == DteStatus.FAILED
        assert patch.error_code == StageErrorCode.RECEPTION_NO_DTE.value
        assert patch.can_retry is False

    @pytest.mark.parametrize("raw_input", ["{not json", "[1, 2, 3]", "42"])
    async def test_unparseable_or_non_object_payload(self, raw_input: str) -> None:
        patch = await receive(_reception(raw_input=raw_input), make_deps())

        assert patch.status == DteStatus.FAILED
        assert patch.error_code == StageErrorCode.RECEPTION_PARSE.value
        assert patch.validation_errors == ["Error parseando JSON recibido"]


@pytest.mark.unit
class TestReceivedDocumentArchive:
    async def test_received_document_is_stored_as_received(self) -> None:
        documents = InMemoryDocumentStore()
        raw = orjson.dumps(make_received_ccf()).decode()

        await receive(
            _reception(raw_input=raw, business_id=RECEIVER_NIT),
            make_deps(documents=documents),
        )

        record = documents.records[CODIGO]
        assert record.clase_documento == DocumentClass.RECEIVED
        assert record.estado == DocumentState.PROCESSED
        assert record.business_id == RECEIVER_NIT
        assert record.issuer_nit == ISSUER_NIT
        assert record.tipo_dte == "03"
        assert record.dte_json == make_received_ccf()

    async def test_owner_defaults_to_the_receptor(self) -> None:
        documents = InMemoryDocumentStore()

        await receive(
            _reception(dte=make_received_ccf(), codigo_generacion=CODIGO),
            make_deps(documents=documents),
        )

        assert documents.records[CODIGO].business_id == RECEIVER_NIT

    async def test_store_failure_does_not_fail_the_reception(self) -> None:
        raw = orjson.dumps(make_received_ccf()).decode()

        patch = await receive(
            _reception(raw_input=raw),
            make_deps(documents=InMemoryDocumentStore(fail=True)),
        )

        assert patch.status == DteStatus.COMPLETED
        assert patch.error_code is None

    async def test_document_without_generation_code_is_not_stored(self) -> None:
        documents = InMemoryDocumentStore()

        await receive(
            _reception(dte={"anything": True}), make_deps(documents=documents)
        )

        assert documents.upserts == 0
