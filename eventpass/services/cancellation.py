import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from eventpass.core.access import AccessPolicy
from eventpass.core.exceptions import AuthorizationError, BusinessRuleError, NotFoundError
from eventpass.models.event import EventStatus
from eventpass.models.notification import Notification, NotificationKind
from eventpass.models.registration import CancelledRegistration, Registration, RegistrationStatus
from eventpass.services.notifications import NotificationSink, dispatch_notification
from eventpass.stores.base import TicketStore
from eventpass.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


def _already_terminal(registration: Registration) -> Optional[BusinessRuleError]:
    if registration.status == RegistrationStatus.CANCELLED:
        return BusinessRuleError(
            "ALREADY_CANCELLED",
            "Registration is already cancelled",
            {"cancelled_at": registration.cancelled_at.isoformat() if registration.cancelled_at else None}
        )
    if registration.status == RegistrationStatus.CHECKED_IN:
        return BusinessRuleError(
            "ALREADY_CHECKED_IN",
            "Cannot cancel a registration that was already checked in",
            {"checked_in_at": registration.checked_in_at.isoformat() if registration.checked_in_at else None}
        )
    return None


class CancellationService:
    """Reverses an issuance: marks the registration cancelled and returns the unit to inventory."""

    def __init__(
        self,
        store: TicketStore,
        access: AccessPolicy,
        notifier: NotificationSink,
        clock: Clock = utc_now
    ):
        self.store = store
        self.access = access
        self.notifier = notifier
        self.clock = clock

    async def cancel(self, registration_id: UUID, requester_id: UUID) -> CancelledRegistration:
        registration = await self.store.get_registration(registration_id)
        if not registration:
            raise NotFoundError("Registration", str(registration_id))

        if registration.user_id != requester_id and not await self.access.is_organizer_or_admin(
            requester_id, registration.event_id
        ):
            raise AuthorizationError("Only the ticket holder, the organizer or an admin can cancel")

        error = _already_terminal(registration)
        if error:
            raise error

        event = await self.store.get_event(registration.event_id)
        if not event:
            raise NotFoundError("Event", str(registration.event_id))

        now = self.clock()
        if now > event.end_at:
            raise BusinessRuleError(
                "EVENT_ENDED",
                "Cannot cancel after the event has ended",
                {"end_at": event.end_at.isoformat()}
            )
        if event.status == EventStatus.CANCELLED:
            raise BusinessRuleError("EVENT_CANCELLED", "The event itself was cancelled")

        async with self.store.transaction() as tx:
            locked = await tx.lock_registration(registration.id)
            if not locked:
                raise NotFoundError("Registration", str(registration_id))

            error = _already_terminal(locked)
            if error:
                raise error

            await tx.mark_cancelled(registration.id, now)
            await tx.adjust_available(registration.ticket_type_id, 1)

        price = registration.ticket_price
        if price is None:
            ticket_type = await self.store.get_ticket_type(registration.ticket_type_id)
            price = ticket_type.price if ticket_type else Decimal("0")
        refund_eligible = price > 0

        logger.info(f"Registration {registration.id} cancelled by {requester_id} (refund_eligible={refund_eligible})")

        await dispatch_notification(self.notifier, Notification(
            recipient=str(registration.user_id),
            template_kind=NotificationKind.REGISTRATION_CANCELLED,
            template_data={
                "registration_id": str(registration.id),
                "event_title": event.title,
                "cancelled_at": now.isoformat(),
                "refund_eligible": refund_eligible,
            }
        ))

        return CancelledRegistration(
            registration_id=registration.id,
            cancelled_at=now,
            refund_eligible=refund_eligible,
        )
