"""Unit tests for the contingency stage."""

import pytest
from pydantic import SecretStr
from pytest_mock import MockerFixture

from src.core.exceptions import SigningServiceError
from src.pipeline.documents import DocumentValidation
from src.pipeline.enums import DocumentState, DteStatus, StageErrorCode
from src.pipeline.stages import contingency
from src.pipeline.state import RunState
from tests.fakes import FIXED_NOW, FakeSigner, InMemoryDocumentStore, make_deps
from tests.samples import CODIGO, ISSUER_NIT, make_dte


def _escalated(**fields: object) -> RunState:
    defaults: dict[str, object] = {
        "dte": make_dte(),
        "is_valid": True,
        "password": SecretStr("clave"),
        "status": DteStatus.CONTINGENCY,
        "is_offline": True,
        "contingency_reason": "Falla de comunicación con MH",
        "codigo_generacion": CODIGO,
        "business_id": ISSUER_NIT,
        "retry_count": 2,
    }
    return RunState(**(defaults | fields))


@pytest.mark.unit
class TestContingencyStage:
    async def test_signs_and_stores_the_deferred_variant(self) -> None:
        signer = FakeSigner()
        documents = InMemoryDocumentStore()
        deps = make_deps(signer=signer, documents=documents)

        patch = await contingency(_escalated(), deps)

        assert patch.status == DteStatus.COMPLETED
        assert patch.is_offline is True
        assert patch.is_signed is True
        assert patch.progress_percentage == 90
        assert patch.current_step == "contingency"
        assert patch.dte is not None
        ident = patch.dte["identificacion"]
        assert ident["tipoModelo"] == 2
        assert ident["tipoOperacion"] == 2
        assert ident["tipoContingencia"] == 2
        assert ident["motivoContin"] == "Falla de comunicación con MH"
        assert ident["fecEmi"] == "2025-03-14"
        assert ident["horEmi"] == "10:30:05"
        assert signer.calls[0].document["identificacion"]["tipoOperacion"] == 2
        assert signer.calls[0].password == "clave"
        record = documents.records[CODIGO]
        assert record.estado == DocumentState.CONTINGENCY
        assert record.firma_jws == patch.signature

    async def test_authority_response_marks_contingency(self) -> None:
        patch = await contingency(_escalated(), make_deps())

        assert patch.authority_response is not None
        assert patch.authority_response.success is False
        assert patch.authority_response.estado == "CONTINGENCIA"
        assert patch.authority_response.receipt_timestamp == FIXED_NOW.isoformat()

    async def test_missing_password(self) -> None:
        patch = await contingency(_escalated(password=None), make_deps())

        assert patch.status == DteStatus.FAILED
        assert patch.error_code == StageErrorCode.CONTINGENCY_MISSING_INPUT.value
        assert patch.can_retry is False
        assert patch.validation_errors
        assert patch.validation_errors[0].startswith("Error generating contingency")

    async def test_invalid_variant(self, mocker: MockerFixture) -> None:
        validator = mocker.Mock(
            return_value=DocumentValidation(valid=False, errors=["emisor.nit: bad"])
        )

        patch = await contingency(_escalated(), make_deps(validator=validator))

        assert patch.error_code == StageErrorCode.CONTINGENCY_VALIDATION.value
        assert patch.validation_errors == ["Error generating contingency: emisor.nit: bad"]

    async def test_signing_failure(self) -> None:
        deps = make_deps(signer=FakeSigner(error=SigningServiceError("down")))

        patch = await contingency(_escalated(), deps)

        assert patch.error_code == StageErrorCode.CONTINGENCY_SIGN.value
        assert patch.can_retry is True

    async def test_store_failure(self) -> None:
        deps = make_deps(documents=InMemoryDocumentStore(fail=True))

        patch = await contingency(_escalated(), deps)

        assert patch.error_code == StageErrorCode.CONTINGENCY_SIGN.value

    async def test_without_business_nothing_is_stored(self) -> None:
        documents = InMemoryDocumentStore()

        patch = await contingency(
            _escalated(business_id=None), make_deps(documents=documents)
        )

        assert patch.status == DteStatus.COMPLETED
        assert documents.records == {}
