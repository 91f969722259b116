"""Unit tests for the caller envelope."""

import pytest

from src.pipeline.authority_errors import ErrorCategory
from src.pipeline.collaborators import AuthorityError, TransmissionResult
from src.pipeline.enums import DteStatus
from src.pipeline.responses import (
    CONTINGENCY_WARNING_CODE,
    CallerCategory,
    CallerSeverity,
    build_process_response,
    normalize_category,
)
from src.pipeline.state import RunState
from tests.fakes import accepted, rejected
from tests.samples import CODIGO, make_dte


@pytest.mark.unit
class TestNormalizeCategory:
    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            (ErrorCategory.AUTH, CallerCategory.AUTH),
            (ErrorCategory.DATA, CallerCategory.DATA),
            (ErrorCategory.DATE, CallerCategory.MATH),
            (ErrorCategory.CALCULATION, CallerCategory.MATH),
            (ErrorCategory.CONTINGENCY, CallerCategory.CONTINGENCY),
            (ErrorCategory.TECHNICAL, CallerCategory.SYSTEM),
            (ErrorCategory.WARNING, CallerCategory.DATA),
            ("something-else", CallerCategory.SYSTEM),
        ],
    )
    def test_mapping(self, category: str, expected: CallerCategory) -> None:
        assert normalize_category(category) == expected


@pytest.mark.unit
class TestBuildProcessResponse:
    def test_accepted_document(self) -> None:
        state = RunState(
            status=DteStatus.COMPLETED,
            codigo_generacion=CODIGO,
            authority_response=accepted(pdf_url="https://files/x.pdf"),
        )

        response = build_process_response(state)

        assert response.success
        assert response.error is None
        assert response.data is not None
        assert response.data.codigo_generacion == CODIGO
        assert response.data.sello_recepcion == "2025A1B2C3D4E5F6"
        assert response.data.fecha_hora_recepcion == "14/03/2025 10:15:30"
        assert response.data.pdf_url == "https://files/x.pdf"

    def test_generation_code_is_read_from_document(self) -> None:
        state = RunState(status=DteStatus.COMPLETED, dte=make_dte())

        response = build_process_response(state)

        assert response.data is not None
        assert response.data.codigo_generacion == CODIGO

    def test_accepted_with_observations_carries_a_warning(self) -> None:
        state = RunState(
            status=DteStatus.COMPLETED,
            authority_response=accepted(
                estado="RECIBIDO_CON_OBSERVACIONES",
                observations=["Redondeo en línea 1"],
            ),
        )

        response = build_process_response(state)

        assert response.success
        assert response.error is not None
        assert response.error.severity == CallerSeverity.WARNING
        assert response.error.category == CallerCategory.DATA
        assert response.error.code == "MH_RECEIVED_WITH_OBSERVATIONS"
        assert response.error.can_retry is False
        assert response.error.details == ["Redondeo en línea 1"]

    def test_completed_offline_discloses_contingency(self) -> None:
        state = RunState(
            status=DteStatus.COMPLETED,
            codigo_generacion=CODIGO,
            is_offline=True,
            contingency_reason="Falla de comunicación con MH",
            authority_response=TransmissionResult(
                success=False, estado="CONTINGENCIA", receipt_timestamp="2025-03-14"
            ),
        )

        response = build_process_response(state)

        assert response.success
        assert response.data is not None
        assert response.data.sello_recepcion is None
        assert response.error is not None
        assert response.error.code == CONTINGENCY_WARNING_CODE
        assert response.error.category == CallerCategory.CONTINGENCY
        assert response.error.severity == CallerSeverity.WARNING
        assert response.error.can_retry is False

    def test_contingency_status_maps_to_timeout(self) -> None:
        state = RunState(
            status=DteStatus.CONTINGENCY,
            contingency_reason="Falla de comunicación con MH",
        )

        response = build_process_response(state)

        assert not response.success
        assert response.error is not None
        assert response.error.code == "MH_TIMEOUT"
        assert response.error.category == CallerCategory.NETWORK
        assert response.error.user_message == "Falla de comunicación con MH"
        assert response.error.can_retry is True

    def test_authority_rejection_uses_the_descriptor(self) -> None:
        state = RunState(
            status=DteStatus.FAILED,
            error_code="TRANSMIT_ERROR_MH_VALIDATION",
            can_retry=False,
            authority_response=rejected("009", "NIT no existe"),
        )

        response = build_process_response(state)

        assert not response.success
        assert response.error is not None
        assert response.error.code == "MH_DATA_NIT_NOT_EXISTS"
        assert response.error.category == CallerCategory.DATA
        assert response.error.can_retry is False
        assert response.error.details == ["009: NIT no existe"]

    def test_rejection_with_only_warnings(self) -> None:
        state = RunState(
            status=DteStatus.FAILED,
            can_retry=False,
            authority_response=TransmissionResult(
                success=False, errors=[AuthorityError(code="018", description="Tarde")]
            ),
        )

        response = build_process_response(state)

        assert response.error is not None
        assert response.error.code == "MH_DATE_OUT_OF_DEADLINE"
        assert response.error.category == CallerCategory.MATH

    def test_stage_failure(self) -> None:
        state = RunState(
            status=DteStatus.FAILED,
            error_code="VALIDATION_ERROR_FIELDS",
            error_message="El DTE tiene campos inválidos",
            validation_errors=["emisor.nit: Field required"],
            can_retry=True,
        )

        response = build_process_response(state)

        assert not response.success
        assert response.data is None
        assert response.error is not None
        assert response.error.code == "VALIDATION_ERROR_FIELDS"
        assert response.error.category == CallerCategory.SYSTEM
        assert response.error.can_retry is True
        assert response.error.details == ["emisor.nit: Field required"]

    def test_non_terminal_status_is_unknown_error(self) -> None:
        response = build_process_response(RunState(status=DteStatus.SIGNING))

        assert not response.success
        assert response.error is not None
        assert response.error.code == "UNKNOWN_ERROR"
        assert response.error.details == ["Status: signing"]

    def test_envelope_serialises_in_camel_case(self) -> None:
        state = RunState(status=DteStatus.COMPLETED, codigo_generacion=CODIGO)

        payload = build_process_response(state).model_dump(
            mode="json", by_alias=True, exclude_none=True
        )

        assert payload == {"success": True, "data": {"codigoGeneracion": CODIGO}}
