import logging
from typing import Optional
from uuid import UUID, uuid4

from eventpass.core.access import AccessPolicy
from eventpass.core.exceptions import (
    AuthorizationError, BusinessRuleError, NotFoundError
)
from eventpass.models.check_in import CheckInMethod, CheckInRecord, CheckInResult, CheckInStats
from eventpass.models.event import EventStatus
from eventpass.models.notification import Notification, NotificationKind
from eventpass.models.registration import Registration, RegistrationStatus
from eventpass.services.notifications import NotificationSink, dispatch_notification
from eventpass.stores.base import TicketStore
from eventpass.utils.check_in_window import WindowPosition, check_in_window, window_position
from eventpass.utils.clock import Clock, utc_now
from eventpass.utils.qr_generator import TicketTokenCodec

logger = logging.getLogger(__name__)


def _terminal_state_error(registration: Registration) -> Optional[BusinessRuleError]:
    """Error for a registration that can no longer be checked in, else None"""
    if registration.status == RegistrationStatus.CANCELLED:
        return BusinessRuleError(
            "REGISTRATION_CANCELLED",
            "This registration was cancelled",
            {"cancelled_at": registration.cancelled_at.isoformat() if registration.cancelled_at else None}
        )
    if registration.status == RegistrationStatus.CHECKED_IN:
        return BusinessRuleError(
            "ALREADY_CHECKED_IN",
            "This ticket was already used",
            {
                "checked_in_at": registration.checked_in_at.isoformat() if registration.checked_in_at else None,
                "attendee_name": registration.attendee_name,
            }
        )
    return None


class CheckInService:
    """Validates a scanned token and moves its registration to checked_in exactly once."""

    def __init__(
        self,
        store: TicketStore,
        codec: TicketTokenCodec,
        access: AccessPolicy,
        notifier: NotificationSink,
        clock: Clock = utc_now
    ):
        self.store = store
        self.codec = codec
        self.access = access
        self.notifier = notifier
        self.clock = clock

    async def check_in(
        self,
        token: str,
        event_id: UUID,
        staff_id: UUID,
        method: CheckInMethod = CheckInMethod.QR,
        location: Optional[str] = None,
        device_info: Optional[dict] = None
    ) -> CheckInResult:
        decoded = self.codec.decode(token)
        if decoded is None:
            raise BusinessRuleError("INVALID_QR_CODE", "QR code is not a valid ticket")

        if decoded.event_uuid != event_id:
            raise BusinessRuleError(
                "WRONG_EVENT",
                "This ticket belongs to a different event",
                {"ticket_event_id": decoded.event_id}
            )

        event = await self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event", str(event_id))
        if event.status != EventStatus.PUBLISHED:
            raise BusinessRuleError(
                "EVENT_NOT_PUBLISHED",
                "Event is not open for check-in",
                {"status": event.status.value}
            )

        if not self.codec.verify(token):
            logger.warning(f"Invalid signature for registration {decoded.registration_id} at event {event_id}")
            raise BusinessRuleError("INVALID_SIGNATURE", "QR code signature is invalid")

        now = self.clock()
        position = window_position(event.start_at, event.end_at, now)
        if position is not WindowPosition.INSIDE:
            opens, closes = check_in_window(event.start_at, event.end_at)
            details = {"opens_at": opens.isoformat(), "closes_at": closes.isoformat()}
            if position is WindowPosition.BEFORE:
                raise BusinessRuleError("EVENT_NOT_STARTED", "Check-in has not opened yet", details)
            raise BusinessRuleError("EVENT_ENDED", "Check-in for this event has closed", details)

        if not await self.access.is_assigned_staff(staff_id, event_id):
            raise AuthorizationError("Staff is not assigned to this event")

        registration = await self.store.get_registration(decoded.registration_uuid, event_id)
        if not registration:
            raise NotFoundError("Registration", decoded.registration_id)

        error = _terminal_state_error(registration)
        if error:
            raise error

        check_in_id = uuid4()

        async with self.store.transaction() as tx:
            locked = await tx.lock_registration(registration.id)
            if not locked:
                raise NotFoundError("Registration", decoded.registration_id)

            if locked.status != RegistrationStatus.CONFIRMED:
                # Lost the race against another scan or a cancellation
                locked.attendee_name = registration.attendee_name
                raise _terminal_state_error(locked)

            await tx.mark_checked_in(registration.id, staff_id, now)
            await tx.insert_check_in(CheckInRecord(
                id=check_in_id,
                registration_id=registration.id,
                staff_id=staff_id,
                method=method,
                location=location,
                device_info=device_info,
                timestamp=now,
            ))

        logger.info(f"Registration {registration.id} checked in at event {event_id} by {staff_id} ({method.value})")

        await dispatch_notification(self.notifier, Notification(
            recipient=str(registration.user_id),
            template_kind=NotificationKind.ATTENDEE_CHECKED_IN,
            template_data={
                "registration_id": str(registration.id),
                "event_title": event.title,
                "checked_in_at": now.isoformat(),
                "location": location,
            }
        ))

        name = registration.attendee_name
        return CheckInResult(
            check_in_id=check_in_id,
            registration_id=registration.id,
            attendee_name=name,
            ticket_type=registration.ticket_type_name,
            checked_in_at=now,
            message=f"Welcome, {name}!" if name else "Welcome!"
        )

    async def get_stats(self, event_id: UUID, requester_id: UUID) -> CheckInStats:
        """Check-in progress for organizers, admins and assigned staff"""
        event = await self.store.get_event(event_id)
        if not event:
            raise NotFoundError("Event", str(event_id))

        allowed = (
            await self.access.is_organizer_or_admin(requester_id, event_id)
            or await self.access.is_assigned_staff(requester_id, event_id)
        )
        if not allowed:
            raise AuthorizationError("Not allowed to view check-in statistics for this event")

        return await self.store.get_check_in_stats(event_id)
