"""
Tests para el store PostgreSQL con conexión asyncpg simulada.
"""
import asyncio
import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import asyncpg

from eventpass.core.access import PostgresAccessPolicy
from eventpass.core.exceptions import ConflictError, DatabaseError
from eventpass.models.registration import RegistrationStatus
from eventpass.stores.postgres import PostgresTicketStore
from tests.utils.factories import NOW, RegistrationFactory
from tests.utils.mocks import MockDBConnection, mock_get_db_connection


@pytest.fixture
def conn():
    return MockDBConnection()


@pytest.fixture
def db(conn):
    factory = mock_get_db_connection(conn)
    with patch('eventpass.stores.postgres.get_db_connection', factory):
        with patch('eventpass.core.access.get_db_connection', factory):
            yield factory


@pytest.fixture
def pg_store(db):
    return PostgresTicketStore()


def _event_row(event_id):
    return {
        "id": event_id, "organizer_id": uuid4(), "title": "Festival", "location": None,
        "start_at": NOW, "end_at": NOW + timedelta(hours=4), "status": "published", "capacity": 50,
    }


class TestReads:

    @pytest.mark.asyncio
    async def test_get_event(self, pg_store, conn):
        event_id = uuid4()
        conn.set_fetchrow_return("FROM events", _event_row(event_id))

        event = await pg_store.get_event(event_id)

        assert event.id == event_id
        assert event.capacity == 50

    @pytest.mark.asyncio
    async def test_get_event_missing(self, pg_store):
        assert await pg_store.get_event(uuid4()) is None

    @pytest.mark.asyncio
    async def test_get_registration_scoped_to_event(self, pg_store, conn):
        registration_id, event_id = uuid4(), uuid4()

        await pg_store.get_registration(registration_id, event_id)

        query, args = conn.calls("fetchrow", "FROM registrations r")[0][1:]
        assert "LEFT JOIN profiles" in query
        assert args == (registration_id, event_id)

    @pytest.mark.asyncio
    async def test_count_active(self, pg_store, conn):
        conn.set_fetchval_return("COUNT(*)", 7)
        assert await pg_store.count_active_registrations(uuid4()) == 7

    @pytest.mark.asyncio
    async def test_check_in_stats(self, pg_store, conn):
        conn.set_fetchrow_return("FILTER", {
            "total_tickets": 3, "checked_in": 1, "pending": 2, "last_check_in": NOW
        })

        stats = await pg_store.get_check_in_stats(uuid4())

        assert stats.check_in_percentage == 33.33
        assert stats.pending == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        OSError("connection refused by 10.0.0.5"),
        asyncio.TimeoutError(),
        asyncpg.PostgresError("relation secret_table does not exist"),
    ])
    async def test_driver_errors_become_database_error(self, pg_store, conn, error):
        """Errores del driver se traducen sin filtrar detalles internos."""
        conn.set_raise("FROM events", error)

        with pytest.raises(DatabaseError) as exc:
            await pg_store.get_event(uuid4())

        assert exc.value.code == "DATABASE_ERROR"
        assert exc.value.details == {}
        assert "10.0.0.5" not in exc.value.message
        assert "secret_table" not in exc.value.message


class TestTransaction:

    @pytest.mark.asyncio
    async def test_lock_ticket_type_for_update(self, pg_store, conn, db):
        tt_id = uuid4()
        conn.set_fetchrow_return("FROM ticket_types", {
            "id": tt_id, "event_id": uuid4(), "name": "VIP", "price": Decimal("10"),
            "quantity": 5, "available": 2,
        })

        async with pg_store.transaction() as tx:
            ticket_type = await tx.lock_ticket_type(tt_id)

        assert ticket_type.available == 2
        assert conn.was_called_with("fetchrow", "FOR UPDATE")

    @pytest.mark.asyncio
    async def test_adjust_available_is_relative(self, pg_store, conn):
        conn.set_fetchval_return("UPDATE ticket_types", 4)

        async with pg_store.transaction() as tx:
            assert await tx.adjust_available(uuid4(), -1) == 4

        query, args = conn.calls("fetchval", "UPDATE ticket_types")[0][1:]
        assert "available = available + $2" in query
        assert args[1] == -1

    @pytest.mark.asyncio
    async def test_adjust_available_rejected(self, pg_store, db):
        with pytest.raises(DatabaseError):
            async with pg_store.transaction() as tx:
                await tx.adjust_available(uuid4(), -1)

        # El error salió del bloque, por lo que la transacción hace rollback
        assert db.managers[-1].exited_with is DatabaseError

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self, pg_store, conn):
        conn.set_raise("INSERT INTO registrations", asyncpg.UniqueViolationError("duplicate key"))
        registration = RegistrationFactory.create(uuid4(), uuid4(), signed_token="tok")

        with pytest.raises(ConflictError) as exc:
            async with pg_store.transaction() as tx:
                await tx.insert_registration(registration)
        assert exc.value.code == "DUPLICATE_REGISTRATION"

    @pytest.mark.asyncio
    async def test_mark_checked_in(self, pg_store, conn):
        registration_id, staff_id = uuid4(), uuid4()

        async with pg_store.transaction() as tx:
            await tx.mark_checked_in(registration_id, staff_id, NOW)

        query, args = conn.calls("execute", "UPDATE registrations")[0][1:]
        assert "checked_in" in query
        assert args == (registration_id, NOW, staff_id)

    @pytest.mark.asyncio
    async def test_lock_registration(self, pg_store, conn):
        reg = RegistrationFactory.create(uuid4(), uuid4(), signed_token="tok")
        conn.set_fetchrow_return("FOR UPDATE", reg.model_dump())

        async with pg_store.transaction() as tx:
            locked = await tx.lock_registration(reg.id)

        assert locked.status == RegistrationStatus.CONFIRMED


class TestAccessPolicy:

    @pytest.mark.asyncio
    async def test_assigned_staff(self, db, conn):
        conn.set_fetchval_return("staff_assignments", True)
        assert await PostgresAccessPolicy().is_assigned_staff(uuid4(), uuid4()) is True

    @pytest.mark.asyncio
    async def test_organizer_or_admin_default_false(self, db):
        assert await PostgresAccessPolicy().is_organizer_or_admin(uuid4(), uuid4()) is False
