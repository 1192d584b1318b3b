import logging
from uuid import UUID, uuid4

from eventpass.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from eventpass.models.event import EventStatus
from eventpass.models.notification import Notification, NotificationKind
from eventpass.models.registration import (
    EventDetails, IssuedTicket, Registration, RegistrationStatus, TicketTypeDetails
)
from eventpass.services.notifications import NotificationSink, dispatch_notification
from eventpass.stores.base import TicketStore
from eventpass.utils.clock import Clock, utc_now
from eventpass.utils.qr_generator import TicketTokenCodec

logger = logging.getLogger(__name__)


class TicketIssuanceService:
    """
    Allocates one ticket: decrements inventory and creates the registration
    in a single transaction holding the ticket type row lock.
    """

    def __init__(
        self,
        store: TicketStore,
        codec: TicketTokenCodec,
        notifier: NotificationSink,
        clock: Clock = utc_now
    ):
        self.store = store
        self.codec = codec
        self.notifier = notifier
        self.clock = clock

    async def issue(self, event_id: UUID, user_id: UUID, ticket_type_id: UUID) -> IssuedTicket:
        event = await self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event", str(event_id))
        if event.status != EventStatus.PUBLISHED:
            raise BusinessRuleError(
                "EVENT_NOT_PUBLISHED",
                "Event is not open for registration",
                {"status": event.status.value}
            )

        now = self.clock()
        if now >= event.start_at:
            raise BusinessRuleError(
                "EVENT_ALREADY_STARTED",
                "Registration closes when the event starts",
                {"start_at": event.start_at.isoformat()}
            )

        ticket_type = await self.store.get_ticket_type(ticket_type_id)
        if not ticket_type or ticket_type.event_id != event.id:
            raise NotFoundError("Ticket type", str(ticket_type_id))

        existing = await self.store.find_active_registration(event.id, user_id, ticket_type.id)
        if existing:
            raise self._duplicate(existing)

        active = await self.store.count_active_registrations(event.id)
        if active >= event.capacity:
            raise BusinessRuleError(
                "CAPACITY_EXCEEDED",
                "Event has reached its capacity",
                {"capacity": event.capacity}
            )

        registration_id = uuid4()

        async with self.store.transaction() as tx:
            locked = await tx.lock_ticket_type(ticket_type.id)
            if not locked:
                raise NotFoundError("Ticket type", str(ticket_type_id))

            # A concurrent double-submit waits on the same lock
            existing = await tx.find_active_registration(event.id, user_id, ticket_type.id)
            if existing:
                raise self._duplicate(existing)

            if locked.available <= 0:
                raise BusinessRuleError(
                    "TICKETS_SOLD_OUT",
                    f"No tickets left for {locked.name or 'this ticket type'}",
                    {"ticket_type_id": str(locked.id)}
                )

            await tx.adjust_available(locked.id, -1)

            registration = Registration(
                id=registration_id,
                event_id=event.id,
                ticket_type_id=locked.id,
                user_id=user_id,
                status=RegistrationStatus.CONFIRMED,
                signed_token=self.codec.encode(event.id, registration_id, now),
                created_at=now,
            )
            await tx.insert_registration(registration)

        logger.info(f"Issued registration {registration_id} for event {event.id} ({locked.available - 1} left)")

        await dispatch_notification(self.notifier, Notification(
            recipient=str(user_id),
            template_kind=NotificationKind.REGISTRATION_CONFIRMED,
            template_data={
                "registration_id": str(registration_id),
                "event_title": event.title,
                "event_start": event.start_at.isoformat(),
                "location": event.location,
                "ticket_type": locked.name,
            }
        ))

        return IssuedTicket(
            registration_id=registration_id,
            token=registration.signed_token,
            status=registration.status,
            issued_at=now,
            event=EventDetails(
                title=event.title,
                start_at=event.start_at,
                end_at=event.end_at,
                location=event.location,
            ),
            ticket_type=TicketTypeDetails(name=locked.name, price=locked.price),
        )

    @staticmethod
    def _duplicate(existing: Registration) -> ConflictError:
        return ConflictError(
            "You already hold an active registration for this ticket type",
            {"registration_id": str(existing.id), "status": existing.status.value}
        )
