"""
PostgreSQL ticket store.

Row locks are plain SELECT ... FOR UPDATE inside the transaction opened by
get_db_connection(); available is only ever changed with a relative UPDATE.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from uuid import UUID

import asyncpg

from eventpass.database import get_db_connection
from eventpass.core.exceptions import CommandError, ConflictError, DatabaseError
from eventpass.models.event import Event, TicketType
from eventpass.models.registration import Registration
from eventpass.models.check_in import CheckInRecord, CheckInStats
from eventpass.stores.base import StoreTransaction, TicketStore

logger = logging.getLogger(__name__)

EVENT_COLUMNS = "id, organizer_id, title, location, start_at, end_at, status, capacity"
TICKET_TYPE_COLUMNS = "id, event_id, name, price, quantity, available"
REGISTRATION_COLUMNS = """
    r.id, r.event_id, r.ticket_type_id, r.user_id, r.status, r.signed_token,
    r.created_at, r.checked_in_at, r.checked_in_by, r.cancelled_at
"""


@asynccontextmanager
async def translate_store_errors(operation: str):
    """Translate driver failures into DatabaseError without leaking driver detail."""
    try:
        yield
    except CommandError:
        raise
    except asyncpg.UniqueViolationError as e:
        logger.info(f"Unique violation during {operation}: {e.constraint_name}")
        raise ConflictError(
            "An active registration already exists for this ticket type"
        ) from e
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
        logger.error(f"Store failure during {operation}: {e}", exc_info=True)
        raise DatabaseError(f"Database operation failed: {operation}") from e


def _registration(row) -> Optional[Registration]:
    return Registration(**dict(row)) if row else None


class PostgresTransaction(StoreTransaction):

    def __init__(self, conn):
        self.conn = conn

    async def lock_ticket_type(self, ticket_type_id: UUID) -> Optional[TicketType]:
        async with translate_store_errors("lock_ticket_type"):
            row = await self.conn.fetchrow(f"""
                SELECT {TICKET_TYPE_COLUMNS}
                FROM ticket_types
                WHERE id = $1
                FOR UPDATE
            """, ticket_type_id)
        return TicketType(**dict(row)) if row else None

    async def lock_registration(self, registration_id: UUID) -> Optional[Registration]:
        async with translate_store_errors("lock_registration"):
            row = await self.conn.fetchrow(f"""
                SELECT {REGISTRATION_COLUMNS}
                FROM registrations r
                WHERE r.id = $1
                FOR UPDATE
            """, registration_id)
        return _registration(row)

    async def find_active_registration(self, event_id, user_id, ticket_type_id) -> Optional[Registration]:
        async with translate_store_errors("find_active_registration"):
            row = await self.conn.fetchrow(f"""
                SELECT {REGISTRATION_COLUMNS}
                FROM registrations r
                WHERE r.event_id = $1 AND r.user_id = $2 AND r.ticket_type_id = $3
                  AND r.status <> 'cancelled'
                LIMIT 1
            """, event_id, user_id, ticket_type_id)
        return _registration(row)

    async def adjust_available(self, ticket_type_id: UUID, delta: int) -> int:
        async with translate_store_errors("adjust_available"):
            available = await self.conn.fetchval("""
                UPDATE ticket_types
                SET available = available + $2
                WHERE id = $1
                  AND available + $2 BETWEEN 0 AND quantity
                RETURNING available
            """, ticket_type_id, delta)
        if available is None:
            raise DatabaseError("Inventory adjustment rejected", {"ticket_type_id": str(ticket_type_id)})
        return available

    async def insert_registration(self, registration: Registration) -> Registration:
        async with translate_store_errors("insert_registration"):
            await self.conn.execute("""
                INSERT INTO registrations
                (id, event_id, ticket_type_id, user_id, status, signed_token, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
            """, registration.id, registration.event_id, registration.ticket_type_id,
                registration.user_id, registration.status.value, registration.signed_token,
                registration.created_at)
        return registration

    async def mark_checked_in(self, registration_id: UUID, staff_id: UUID, checked_in_at: datetime) -> None:
        async with translate_store_errors("mark_checked_in"):
            await self.conn.execute("""
                UPDATE registrations
                SET status = 'checked_in', checked_in_at = $2, checked_in_by = $3
                WHERE id = $1
            """, registration_id, checked_in_at, staff_id)

    async def insert_check_in(self, record: CheckInRecord) -> None:
        async with translate_store_errors("insert_check_in"):
            await self.conn.execute("""
                INSERT INTO check_ins
                (id, registration_id, staff_id, method, location, device_info, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
            """, record.id, record.registration_id, record.staff_id, record.method.value,
                record.location, json.dumps(record.device_info) if record.device_info else None,
                record.timestamp)

    async def mark_cancelled(self, registration_id: UUID, cancelled_at: datetime) -> None:
        async with translate_store_errors("mark_cancelled"):
            await self.conn.execute("""
                UPDATE registrations
                SET status = 'cancelled', cancelled_at = $2
                WHERE id = $1
            """, registration_id, cancelled_at)


class PostgresTicketStore(TicketStore):
    """TicketStore backed by the shared asyncpg pool."""

    async def get_event(self, event_id: UUID) -> Optional[Event]:
        async with translate_store_errors("get_event"):
            async with get_db_connection(use_transaction=False) as conn:
                row = await conn.fetchrow(f"SELECT {EVENT_COLUMNS} FROM events WHERE id = $1", event_id)
        return Event(**dict(row)) if row else None

    async def get_ticket_type(self, ticket_type_id: UUID) -> Optional[TicketType]:
        async with translate_store_errors("get_ticket_type"):
            async with get_db_connection(use_transaction=False) as conn:
                row = await conn.fetchrow(
                    f"SELECT {TICKET_TYPE_COLUMNS} FROM ticket_types WHERE id = $1", ticket_type_id
                )
        return TicketType(**dict(row)) if row else None

    async def find_active_registration(self, event_id, user_id, ticket_type_id) -> Optional[Registration]:
        async with translate_store_errors("find_active_registration"):
            async with get_db_connection(use_transaction=False) as conn:
                return await PostgresTransaction(conn).find_active_registration(
                    event_id, user_id, ticket_type_id
                )

    async def count_active_registrations(self, event_id: UUID) -> int:
        async with translate_store_errors("count_active_registrations"):
            async with get_db_connection(use_transaction=False) as conn:
                count = await conn.fetchval("""
                    SELECT COUNT(*) FROM registrations
                    WHERE event_id = $1 AND status IN ('confirmed', 'checked_in')
                """, event_id)
        return count or 0

    async def get_registration(self, registration_id: UUID, event_id: Optional[UUID] = None) -> Optional[Registration]:
        async with translate_store_errors("get_registration"):
            async with get_db_connection(use_transaction=False) as conn:
                row = await conn.fetchrow(f"""
                    SELECT {REGISTRATION_COLUMNS},
                           p.name AS attendee_name,
                           tt.name AS ticket_type_name,
                           tt.price AS ticket_price
                    FROM registrations r
                    JOIN ticket_types tt ON tt.id = r.ticket_type_id
                    LEFT JOIN profiles p ON p.id = r.user_id
                    WHERE r.id = $1
                      AND ($2::uuid IS NULL OR r.event_id = $2::uuid)
                """, registration_id, event_id)
        return _registration(row)

    async def get_check_in_stats(self, event_id: UUID) -> CheckInStats:
        async with translate_store_errors("get_check_in_stats"):
            async with get_db_connection(use_transaction=False) as conn:
                stats = await conn.fetchrow("""
                    SELECT
                        COUNT(*) as total_tickets,
                        COUNT(*) FILTER (WHERE status = 'checked_in') as checked_in,
                        COUNT(*) FILTER (WHERE status = 'confirmed') as pending,
                        MAX(checked_in_at) as last_check_in
                    FROM registrations
                    WHERE event_id = $1
                      AND status IN ('confirmed', 'checked_in')
                """, event_id)

        total = stats['total_tickets'] or 0
        checked_in = stats['checked_in'] or 0

        return CheckInStats(
            event_id=event_id,
            total_tickets=total,
            checked_in=checked_in,
            pending=stats['pending'] or 0,
            check_in_percentage=round((checked_in / total * 100) if total > 0 else 0, 2),
            last_check_in=stats['last_check_in']
        )

    @asynccontextmanager
    async def transaction(self):
        async with translate_store_errors("transaction"):
            async with get_db_connection(use_transaction=True) as conn:
                yield PostgresTransaction(conn)
