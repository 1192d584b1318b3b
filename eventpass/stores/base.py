"""
Transactional Ticket Store Interface

Every store implementation must provide these reads plus a transaction
whose row locks serialize concurrent issuance, check-in and cancellation
on the same ticket type or registration.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional
from uuid import UUID

from eventpass.models.event import Event, TicketType
from eventpass.models.registration import Registration
from eventpass.models.check_in import CheckInRecord, CheckInStats


class StoreTransaction(ABC):
    """
    Operations valid only inside TicketStore.transaction().

    Locks taken here are held until the transaction commits or rolls back.
    """

    @abstractmethod
    async def lock_ticket_type(self, ticket_type_id: UUID) -> Optional[TicketType]:
        """Read the ticket type row under an exclusive lock."""
        pass

    @abstractmethod
    async def lock_registration(self, registration_id: UUID) -> Optional[Registration]:
        """Read the registration row under an exclusive lock."""
        pass

    @abstractmethod
    async def find_active_registration(
        self, event_id: UUID, user_id: UUID, ticket_type_id: UUID
    ) -> Optional[Registration]:
        pass

    @abstractmethod
    async def adjust_available(self, ticket_type_id: UUID, delta: int) -> int:
        """
        Atomically add delta to available and return the new value.

        This is the only write path for TicketType.available.
        """
        pass

    @abstractmethod
    async def insert_registration(self, registration: Registration) -> Registration:
        pass

    @abstractmethod
    async def mark_checked_in(self, registration_id: UUID, staff_id: UUID, checked_in_at: datetime) -> None:
        pass

    @abstractmethod
    async def insert_check_in(self, record: CheckInRecord) -> None:
        pass

    @abstractmethod
    async def mark_cancelled(self, registration_id: UUID, cancelled_at: datetime) -> None:
        pass


class TicketStore(ABC):
    """Reads plus the transaction factory consumed by the ticketing services."""

    @abstractmethod
    async def get_event(self, event_id: UUID) -> Optional[Event]:
        pass

    @abstractmethod
    async def get_ticket_type(self, ticket_type_id: UUID) -> Optional[TicketType]:
        pass

    @abstractmethod
    async def find_active_registration(
        self, event_id: UUID, user_id: UUID, ticket_type_id: UUID
    ) -> Optional[Registration]:
        """Non-cancelled registration for (event, user, ticket type), if any."""
        pass

    @abstractmethod
    async def count_active_registrations(self, event_id: UUID) -> int:
        """Confirmed plus checked-in registrations for the event."""
        pass

    @abstractmethod
    async def get_registration(
        self, registration_id: UUID, event_id: Optional[UUID] = None
    ) -> Optional[Registration]:
        """Load a registration, optionally scoped to an event."""
        pass

    @abstractmethod
    async def get_check_in_stats(self, event_id: UUID) -> CheckInStats:
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """
        All-or-nothing unit of work.

        Leaving the block normally commits; raising rolls back every
        operation performed through the yielded StoreTransaction.
        """
        pass
