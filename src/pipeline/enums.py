"""Enumerations shared by the run state, the stages and the stores."""

from enum import StrEnum


class DteStatus(StrEnum):
    """Lifecycle status of a pipeline run."""

    DRAFT = "draft"
    VALIDATING = "validating"
    SIGNING = "signing"
    TRANSMITTING = "transmitting"
    COMPLETED = "completed"
    FAILED = "failed"
    CONTINGENCY = "contingency"
    PROCESSING_RECEPTION = "processing_reception"


class FlowType(StrEnum):
    """Whether the business issued the document or received it."""

    EMISSION = "emission"
    RECEPTION = "reception"


class Environment(StrEnum):
    """Authority environment, using the codes carried in ``identificacion.ambiente``."""

    SANDBOX = "00"
    PRODUCTION = "01"


class DocumentState(StrEnum):
    """State of a persisted document record."""

    PROCESSED = "processed"
    CONTINGENCY = "contingency"


class DocumentClass(StrEnum):
    """Whether a persisted document was issued or received by the business."""

    ISSUED = "emitido"
    RECEIVED = "recibido"


class StageErrorCode(StrEnum):
    """Stable error codes set on the run state when a stage fails."""

    VALIDATION_NO_DTE = "VALIDATION_ERROR_NO_DTE"
    VALIDATION_FIELDS = "VALIDATION_ERROR_FIELDS"
    VALIDATION_SYSTEM = "VALIDATION_ERROR_SYSTEM"

    SIGN_NO_DTE = "SIGN_ERROR_NO_DTE"
    SIGN_NOT_VALIDATED = "SIGN_ERROR_NOT_VALIDATED"
    SIGN_NO_CREDENTIALS = "SIGN_ERROR_NO_CREDENTIALS"
    SIGN_INACTIVE_LICENSE = "SIGN_ERROR_INACTIVE_LICENSE"
    SIGN_NO_PASSWORD = "SIGN_ERROR_NO_PASSWORD"
    SIGN_SERVICE = "SIGN_ERROR_SERVICE"

    TRANSMIT_NO_SIGNATURE = "TRANSMIT_ERROR_NO_SIGNATURE"
    TRANSMIT_COMMUNICATION = "TRANSMIT_ERROR_COMMUNICATION"
    TRANSMIT_MH_VALIDATION = "TRANSMIT_ERROR_MH_VALIDATION"
    TRANSMIT_SYSTEM = "TRANSMIT_ERROR_SYSTEM"

    CONTINGENCY_MISSING_INPUT = "CONTINGENCY_ERROR_MISSING_INPUT"
    CONTINGENCY_VALIDATION = "CONTINGENCY_ERROR_VALIDATION"
    CONTINGENCY_SIGN = "CONTINGENCY_ERROR_SIGN"

    RECEPTION_NO_DTE = "RECEPTION_ERROR_NO_DTE"
    RECEPTION_PARSE = "RECEPTION_ERROR_PARSE"

    PIPELINE_TRANSITION = "PIPELINE_ERROR_TRANSITION"
