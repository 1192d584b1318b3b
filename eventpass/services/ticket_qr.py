import logging
from datetime import datetime, timezone
from uuid import UUID

from eventpass.core.access import AccessPolicy
from eventpass.core.exceptions import AuthorizationError, BusinessRuleError, NotFoundError
from eventpass.models.registration import Registration, RegistrationStatus, TicketQRResponse
from eventpass.stores.base import TicketStore
from eventpass.utils.qr_generator import generate_data_url, generate_qr_base64, generate_qr_image

logger = logging.getLogger(__name__)


async def get_qr_registration(
    store: TicketStore,
    access: AccessPolicy,
    registration_id: UUID,
    requester_id: UUID
) -> Registration:
    """Load a registration whose QR the requester may see (holder, organizer or admin)"""
    registration = await store.get_registration(registration_id)
    if not registration:
        raise NotFoundError("Registration", str(registration_id))

    if registration.user_id != requester_id and not await access.is_organizer_or_admin(
        requester_id, registration.event_id
    ):
        raise AuthorizationError("Access denied")

    if registration.status == RegistrationStatus.CANCELLED:
        raise BusinessRuleError(
            "REGISTRATION_CANCELLED",
            "Cannot generate QR for a cancelled registration"
        )

    return registration


async def generate_qr_for_registration(
    store: TicketStore,
    access: AccessPolicy,
    registration_id: UUID,
    requester_id: UUID
) -> TicketQRResponse:
    """QR code of the signed token as base64 PNG plus data URL"""
    registration = await get_qr_registration(store, access, registration_id, requester_id)

    qr_base64 = generate_qr_base64(registration.signed_token)
    logger.info(f"QR generated for registration {registration.id}")

    return TicketQRResponse(
        registration_id=registration.id,
        qr_code_base64=qr_base64,
        qr_code_data_url=generate_data_url(qr_base64),
        generated_at=datetime.now(timezone.utc)
    )


async def generate_qr_png(
    store: TicketStore,
    access: AccessPolicy,
    registration_id: UUID,
    requester_id: UUID
) -> bytes:
    registration = await get_qr_registration(store, access, registration_id, requester_id)
    return generate_qr_image(registration.signed_token)
