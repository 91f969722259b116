"""Signing stage: resolve credentials and obtain the JWS envelope."""

from loguru import logger
from pydantic import SecretStr

from src.core.types import DocumentPayload
from src.pipeline.dependencies import PipelineDependencies
from src.pipeline.documents import clean_for_signing, clean_nit, issuer_nit
from src.pipeline.enums import DteStatus, StageErrorCode
from src.pipeline.stages.base import failure
from src.pipeline.state import RunState, StatePatch


async def wake_signer(deps: PipelineDependencies) -> bool:
    """Poll the signer's health endpoint until it answers.

    Hosted signers sleep when idle. A bounded number of attempts is made with
    a linearly growing pause between them. Giving up is not an error: the
    sign call that follows fails for real if the service is down.

    Returns:
        bool: Whether the signer reported healthy.
    """
    config = deps.settings.signing_config
    for attempt in range(1, config.wake_retries + 1):
        try:
            if await deps.bounded(deps.signer.health_check()):
                logger.debug("Signing service is awake", attempt=attempt)
                return True
        except Exception as e:  # noqa: BLE001 - wake failures are never fatal
            logger.debug("Signer health check raised: {}", e)

        logger.warning(
            "Signing service not responding ({}/{})", attempt, config.wake_retries
        )
        if attempt < config.wake_retries:
            await deps.sleep(config.wake_base_delay_seconds * attempt)

    logger.warning("Could not verify the signing service, continuing")
    return False


async def sign_document(
    deps: PipelineDependencies,
    document: DocumentPayload,
    password: SecretStr,
    api_token: SecretStr | None,
) -> str:
    """Wake the signer and sign a cleaned copy of the document.

    Raises:
        Exception: Whatever the signer or the timeout raises.
    """
    await wake_signer(deps)
    return await deps.bounded(
        deps.signer.sign(
            issuer_nit(document),
            password.get_secret_value(),
            clean_for_signing(document),
            api_token.get_secret_value() if api_token else None,
        )
    )


async def sign(state: RunState, deps: PipelineDependencies) -> StatePatch:
    """Sign a validated document with the business's credentials.

    Credentials, license and password are checked before the signer is woken,
    so configuration errors fail without polling the service.
    """
    if not state.dte:
        return failure(
            StageErrorCode.SIGN_NO_DTE,
            "No hay DTE para firmar",
            can_retry=False,
            progress=25,
        )
    if not state.is_valid:
        return failure(
            StageErrorCode.SIGN_NOT_VALIDATED,
            "El DTE no ha sido validado",
            can_retry=False,
            progress=25,
        )

    lookup_id = clean_nit(state.business_id) or issuer_nit(state.dte)

    try:
        credentials = await deps.bounded(
            deps.credentials.resolve(lookup_id, state.ambiente)
        )
    except Exception as e:
        logger.exception("Credential lookup failed", stage="sign")
        return failure(
            StageErrorCode.SIGN_SERVICE,
            f"Error al obtener credenciales: {e}",
            can_retry=True,
            progress=25,
        )

    if credentials is None:
        logger.error("No signing credentials", stage="sign", lookup_id=lookup_id)
        return failure(
            StageErrorCode.SIGN_NO_CREDENTIALS,
            f"El NIT {lookup_id} no tiene credenciales registradas para el "
            f"ambiente {state.ambiente.value}",
            can_retry=False,
            progress=25,
        )

    if not credentials.active:
        logger.error("Inactive license", stage="sign", lookup_id=lookup_id)
        return failure(
            StageErrorCode.SIGN_INACTIVE_LICENSE,
            f"El servicio DTE se encuentra suspendido para el contribuyente "
            f"{lookup_id}. Por favor verifique su licencia o suscripción.",
            can_retry=False,
            progress=25,
        )

    password = state.password or credentials.password
    if password is None or not password.get_secret_value():
        logger.error("No signing password", stage="sign", lookup_id=lookup_id)
        return failure(
            StageErrorCode.SIGN_NO_PASSWORD,
            "La contraseña del certificado no está configurada para este NIT",
            can_retry=False,
            progress=25,
        )

    api_token = state.api_token or credentials.api_token

    try:
        signature = await sign_document(deps, state.dte, password, api_token)
    except Exception as e:
        logger.exception("Signing failed", stage="sign")
        return failure(
            StageErrorCode.SIGN_SERVICE,
            f"Error al firmar: {e}",
            can_retry=True,
            progress=40,
        )

    logger.info("Document signed", stage="sign")
    return StatePatch(
        password=password,
        api_token=api_token,
        is_signed=True,
        signature=signature,
        status=DteStatus.TRANSMITTING,
        progress_percentage=50,
        current_step="signer",
        estimated_time=30,
    )
