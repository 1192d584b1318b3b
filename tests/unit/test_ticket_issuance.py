"""
Tests para la emisión de tickets.
"""
import asyncio
import pytest
from datetime import timedelta
from uuid import uuid4

from eventpass.core.exceptions import (
    BusinessRuleError, ConflictError, DatabaseError, NotFoundError
)
from eventpass.models.event import EventStatus
from eventpass.models.registration import RegistrationStatus
from tests.utils.factories import NOW, EventFactory, RegistrationFactory, TicketTypeFactory


@pytest.fixture
def event(store):
    return store.add_event(EventFactory.create(start_at=NOW + timedelta(hours=3)))


@pytest.fixture
def ticket_type(store, event):
    return store.add_ticket_type(TicketTypeFactory.create(event.id, quantity=5))


class TestIssueTicket:

    @pytest.mark.asyncio
    async def test_issue_success(self, services, store, codec, notifier, event, ticket_type):
        """Emite ticket, descuenta inventario y firma el token."""
        user_id = uuid4()
        issued = await services.issuance.issue(event.id, user_id, ticket_type.id)

        assert issued.status == RegistrationStatus.CONFIRMED
        assert issued.issued_at == NOW
        assert issued.event.title == event.title
        assert issued.ticket_type.name == ticket_type.name
        assert store.available(ticket_type.id) == 4

        registration = store.registrations[issued.registration_id]
        assert registration.user_id == user_id
        assert registration.signed_token == issued.token

        decoded = codec.decode(issued.token)
        assert codec.verify(issued.token)
        assert decoded.event_uuid == event.id
        assert decoded.registration_uuid == issued.registration_id

        assert notifier.kinds() == ["registration_confirmed"]
        assert notifier.notifications[0].recipient == str(user_id)

    @pytest.mark.asyncio
    async def test_event_not_found(self, services, ticket_type):
        with pytest.raises(NotFoundError) as exc:
            await services.issuance.issue(uuid4(), uuid4(), ticket_type.id)
        assert exc.value.code == "EVENT_NOT_FOUND"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [EventStatus.DRAFT, EventStatus.CANCELLED, EventStatus.COMPLETED])
    async def test_event_not_published(self, services, store, status):
        event = store.add_event(EventFactory.create(status=status))
        tt = store.add_ticket_type(TicketTypeFactory.create(event.id))

        with pytest.raises(BusinessRuleError) as exc:
            await services.issuance.issue(event.id, uuid4(), tt.id)
        assert exc.value.code == "EVENT_NOT_PUBLISHED"

    @pytest.mark.asyncio
    async def test_event_already_started(self, services, store, clock, event, ticket_type):
        """No hay registro una vez iniciado el evento."""
        clock.now = event.start_at
        with pytest.raises(BusinessRuleError) as exc:
            await services.issuance.issue(event.id, uuid4(), ticket_type.id)
        assert exc.value.code == "EVENT_ALREADY_STARTED"
        assert store.available(ticket_type.id) == 5

    @pytest.mark.asyncio
    async def test_ticket_type_from_other_event(self, services, store, event):
        other = store.add_event(EventFactory.create())
        foreign = store.add_ticket_type(TicketTypeFactory.create(other.id))

        with pytest.raises(NotFoundError) as exc:
            await services.issuance.issue(event.id, uuid4(), foreign.id)
        assert exc.value.code == "TICKET_TYPE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, services, store, event, ticket_type):
        user_id = uuid4()
        await services.issuance.issue(event.id, user_id, ticket_type.id)

        with pytest.raises(ConflictError) as exc:
            await services.issuance.issue(event.id, user_id, ticket_type.id)
        assert exc.value.code == "DUPLICATE_REGISTRATION"
        assert store.available(ticket_type.id) == 4

    @pytest.mark.asyncio
    async def test_cancelled_registration_does_not_block(self, services, store, event, ticket_type):
        """El guard de duplicados ignora los registros cancelados."""
        user_id = uuid4()
        store.add_registration(RegistrationFactory.create(
            event.id, ticket_type.id, user_id=user_id, status=RegistrationStatus.CANCELLED
        ))

        issued = await services.issuance.issue(event.id, user_id, ticket_type.id)
        assert issued.status == RegistrationStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_capacity_exceeded(self, services, store):
        event = store.add_event(EventFactory.create(capacity=1))
        tt = store.add_ticket_type(TicketTypeFactory.create(event.id, quantity=10))
        store.add_registration(RegistrationFactory.create(event.id, tt.id, status=RegistrationStatus.CHECKED_IN))

        with pytest.raises(BusinessRuleError) as exc:
            await services.issuance.issue(event.id, uuid4(), tt.id)
        assert exc.value.code == "CAPACITY_EXCEEDED"

    @pytest.mark.asyncio
    async def test_sold_out(self, services, store, event):
        tt = store.add_ticket_type(TicketTypeFactory.create(event.id, quantity=3, available=0))

        with pytest.raises(BusinessRuleError) as exc:
            await services.issuance.issue(event.id, uuid4(), tt.id)
        assert exc.value.code == "TICKETS_SOLD_OUT"
        assert store.registrations == {}

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back(self, services, store, notifier, event, ticket_type):
        """Si el insert falla, el descuento de inventario se revierte."""
        store.fail_on.add("insert_registration")

        with pytest.raises(DatabaseError):
            await services.issuance.issue(event.id, uuid4(), ticket_type.id)

        assert store.available(ticket_type.id) == 5
        assert store.registrations == {}
        assert notifier.notifications == []

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_issue(self, services, store, notifier, event, ticket_type):
        notifier.fail = True
        issued = await services.issuance.issue(event.id, uuid4(), ticket_type.id)
        assert issued.registration_id in store.registrations


class TestConcurrentIssuance:

    @pytest.mark.asyncio
    async def test_last_unit_sold_once(self, services, store, event):
        """Dos emisiones concurrentes por la última unidad: una gana, otra TICKETS_SOLD_OUT."""
        tt = store.add_ticket_type(TicketTypeFactory.create(event.id, quantity=1))

        results = await asyncio.gather(
            services.issuance.issue(event.id, uuid4(), tt.id),
            services.issuance.issue(event.id, uuid4(), tt.id),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], BusinessRuleError)
        assert failures[0].code == "TICKETS_SOLD_OUT"
        assert store.available(tt.id) == 0
        assert len(store.registrations) == 1

    @pytest.mark.asyncio
    async def test_double_submit_creates_one_registration(self, services, store, event, ticket_type):
        """El mismo usuario enviando dos veces a la vez obtiene un solo registro."""
        user_id = uuid4()
        results = await asyncio.gather(
            services.issuance.issue(event.id, user_id, ticket_type.id),
            services.issuance.issue(event.id, user_id, ticket_type.id),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], ConflictError)
        assert store.available(ticket_type.id) == 4
        assert len(store.registrations) == 1

    @pytest.mark.asyncio
    async def test_many_buyers_never_oversell(self, services, store, event):
        tt = store.add_ticket_type(TicketTypeFactory.create(event.id, quantity=3))

        results = await asyncio.gather(
            *[services.issuance.issue(event.id, uuid4(), tt.id) for _ in range(10)],
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 3
        assert store.available(tt.id) == 0
        assert len(store.registrations) == 3
