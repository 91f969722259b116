"""Tax authority response codes mapped to user-facing error descriptors."""

from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field

from src.pipeline.collaborators import TransmissionResult


class ErrorCategory(StrEnum):
    AUTH = "auth"
    DATA = "data"
    DATE = "date"
    CALCULATION = "calculation"
    CONTINGENCY = "contingency"
    TECHNICAL = "technical"
    WARNING = "warning"


class DescriptorSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"


class ErrorDescriptor(BaseModel):
    """What a raw authority code means for the technician and for the user."""

    model_config = ConfigDict(frozen=True)

    category: ErrorCategory
    code: str
    message: str
    user_message: str
    can_retry: bool
    severity: DescriptorSeverity


OBSERVATIONS_DESCRIPTOR_CODE: Final = "MH_RECEIVED_WITH_OBSERVATIONS"


def _descriptor(
    category: ErrorCategory,
    code: str,
    message: str,
    user_message: str,
    *,
    can_retry: bool,
    severity: DescriptorSeverity = DescriptorSeverity.ERROR,
) -> ErrorDescriptor:
    return ErrorDescriptor(
        category=category,
        code=code,
        message=message,
        user_message=user_message,
        can_retry=can_retry,
        severity=severity,
    )


AUTHORITY_ERRORS: Final[dict[str, ErrorDescriptor]] = {
    # Access and password
    "100": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_USER_INVALID",
        "El nombre de usuario no existe en el sistema",
        "El nombre de usuario que escribiste no existe. Revisa que no tengas "
        "espacios extra o letras cambiadas.",
        can_retry=True,
    ),
    "103": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_PASSWORD_EXPIRED",
        "La contraseña ha expirado",
        "Tu clave de acceso ya venció. Debes actualizarla desde la Consola de "
        "Administración.",
        can_retry=False,
    ),
    "105": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_PASSWORD_MISMATCH",
        "Las contraseñas no coinciden",
        "Al cambiar tu clave, escribiste algo diferente en la confirmación. "
        "Escribe ambas con cuidado para que sean idénticas.",
        can_retry=True,
    ),
    "106": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_CREDENTIALS_INVALID",
        "Credenciales inválidas",
        "El usuario o la contraseña no coinciden. Verifica tus datos y recuerda "
        "que la contraseña debe tener entre 13 y 25 caracteres, incluyendo "
        "letras, números y un carácter especial.",
        can_retry=True,
    ),
    "107": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_TOKEN_INVALID",
        "Token inválido",
        'Tu "pase de entrada" digital falló. Tu sistema debe solicitar un nuevo '
        "token de seguridad.",
        can_retry=True,
    ),
    "108": _descriptor(
        ErrorCategory.AUTH,
        "MH_AUTH_TOKEN_REQUIRED",
        "Token requerido",
        'Tu "pase de entrada" digital ya caducó. Tu sistema debe solicitar un '
        "nuevo token de seguridad.",
        can_retry=True,
    ),
    # Document data
    "003": _descriptor(
        ErrorCategory.DATA,
        "MH_DATA_INVALID_VALUE",
        "Valor no válido",
        "Pusiste un dato que el sistema no reconoce. Revisa que estés usando los "
        "códigos correctos (por ejemplo, el código de unidad de medida o de país).",
        can_retry=True,
    ),
    "004": _descriptor(
        ErrorCategory.DATA,
        "MH_DATA_ALREADY_EXISTS",
        "Registro ya existe",
        "Estás intentando enviar una factura con un número que ya habías enviado "
        "antes. Revisa tu correlativo; no puedes repetir números de control.",
        can_retry=False,
    ),
    "006": _descriptor(
        ErrorCategory.DATA,
        "MH_DATA_INVALID_FORMAT",
        "Formato no válido",
        "Algún dato, como el NIT o un correo, está mal escrito. Verifica que el "
        "NIT tenga 14 dígitos y los guiones correctos.",
        can_retry=True,
    ),
    "009": _descriptor(
        ErrorCategory.DATA,
        "MH_DATA_NIT_NOT_EXISTS",
        "NIT no existe",
        "El NIT que pusiste (ya sea el tuyo o el del cliente) no está registrado "
        "en el Ministerio de Hacienda. Pídele al cliente su tarjeta de NIT para "
        "confirmar el número.",
        can_retry=True,
    ),
    "010": _descriptor(
        ErrorCategory.DATA,
        "MH_DATA_INACTIVE_TAXPAYER",
        "Contribuyente no activo",
        'Tú o tu cliente aparecen como "no activos" para Hacienda. Debes revisar '
        "tu situación tributaria o la de tu cliente en el Ministerio.",
        can_retry=False,
    ),
    # Dates and calculations
    "017": _descriptor(
        ErrorCategory.DATE,
        "MH_DATE_INVALID",
        "Fecha no es correcta",
        "Pusiste una fecha que no existe (ej. 30 de febrero). Corrige el "
        "calendario de tu documento.",
        can_retry=True,
    ),
    "018": _descriptor(
        ErrorCategory.DATE,
        "MH_DATE_OUT_OF_DEADLINE",
        "Fecha fuera de plazo",
        "Estás enviando el documento demasiado tarde. Normalmente solo tienes "
        "hasta el día siguiente de la venta para enviarlo.",
        can_retry=False,
        severity=DescriptorSeverity.WARNING,
    ),
    "020": _descriptor(
        ErrorCategory.CALCULATION,
        "MH_CALCULATION_INCORRECT",
        "Cálculo incorrecto",
        "Las sumas o el cálculo del IVA no cuadran con los precios que pusiste. "
        "Revisa tus sumas. Recuerda que el sistema permite una diferencia de "
        "apenas un centavo ($0.01).",
        can_retry=True,
    ),
    # Contingency and technical
    "012": _descriptor(
        ErrorCategory.CONTINGENCY,
        "MH_CONTINGENCY_NO_EVENT",
        "No existe evento de contingencia",
        'Quieres enviar una factura "atrasada" por falta de internet, pero no has '
        "enviado primero el aviso de que tuviste problemas técnicos.",
        can_retry=False,
    ),
    "096": _descriptor(
        ErrorCategory.TECHNICAL,
        "MH_TECHNICAL_JSON_SCHEMA",
        "No cumple esquema JSON",
        'El archivo digital que genera tu sistema está "roto" o mal construido. '
        "Esto es un problema técnico que debe revisar el encargado de tu sistema.",
        can_retry=False,
    ),
    # Accepted with observations; not an error
    "002": _descriptor(
        ErrorCategory.WARNING,
        OBSERVATIONS_DESCRIPTOR_CODE,
        "Recibido con observaciones",
        "¡Hacienda aceptó tu documento y es válido! Solo encontró un pequeño "
        "detalle que debes corregir en el futuro (como un cálculo redondeado), "
        "pero no detuvo tu venta.",
        can_retry=False,
        severity=DescriptorSeverity.SUCCESS,
    ),
}


def map_authority_code(code: str | int) -> ErrorDescriptor:
    """Descriptor for a raw authority code.

    Unknown codes map to a generic retryable descriptor instead of failing.
    Numeric codes are zero-padded to three digits, the form the authority
    documents them in.
    """
    key = f"{code:03d}" if isinstance(code, int) else code.strip()
    if descriptor := AUTHORITY_ERRORS.get(key):
        return descriptor
    return ErrorDescriptor(
        category=ErrorCategory.TECHNICAL,
        code="MH_UNKNOWN_ERROR",
        message=f"Error desconocido: {code}",
        user_message="Ocurrió un error inesperado. Por favor, intenta nuevamente "
        "o contacta a soporte técnico.",
        can_retry=True,
        severity=DescriptorSeverity.ERROR,
    )


class ClassifiedResponse(BaseModel):
    """Authority errors grouped by how the caller should present them."""

    errors: list[ErrorDescriptor] = Field(default_factory=list)
    warnings: list[ErrorDescriptor] = Field(default_factory=list)
    observations: ErrorDescriptor | None = None


def classify_authority_response(result: TransmissionResult) -> ClassifiedResponse:
    """Map each code the authority returned and group them by severity."""
    classified = ClassifiedResponse()
    for error in result.errors:
        descriptor = map_authority_code(error.code)
        match descriptor.severity:
            case DescriptorSeverity.ERROR:
                classified.errors.append(descriptor)
            case DescriptorSeverity.WARNING:
                classified.warnings.append(descriptor)
            case DescriptorSeverity.SUCCESS:
                classified.observations = descriptor
    return classified
