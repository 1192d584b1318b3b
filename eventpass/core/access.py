"""
Event access checks.

Services ask these two questions instead of comparing role strings.
"""
from abc import ABC, abstractmethod
from uuid import UUID
import logging

from eventpass.database import get_db_connection
from eventpass.stores.postgres import translate_store_errors

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


class AccessPolicy(ABC):

    @abstractmethod
    async def is_assigned_staff(self, user_id: UUID, event_id: UUID) -> bool:
        """True if the user may scan tickets at the event."""
        pass

    @abstractmethod
    async def is_organizer_or_admin(self, user_id: UUID, event_id: UUID) -> bool:
        """True if the user organizes the event or holds the admin role."""
        pass


class PostgresAccessPolicy(AccessPolicy):

    async def is_assigned_staff(self, user_id: UUID, event_id: UUID) -> bool:
        async with translate_store_errors("is_assigned_staff"):
            async with get_db_connection(use_transaction=False) as conn:
                assigned = await conn.fetchval("""
                    SELECT EXISTS (
                        SELECT 1 FROM staff_assignments
                        WHERE user_id = $1 AND event_id = $2
                    )
                """, user_id, event_id)
        return bool(assigned)

    async def is_organizer_or_admin(self, user_id: UUID, event_id: UUID) -> bool:
        async with translate_store_errors("is_organizer_or_admin"):
            async with get_db_connection(use_transaction=False) as conn:
                allowed = await conn.fetchval("""
                    SELECT EXISTS (
                        SELECT 1 FROM events WHERE id = $2 AND organizer_id = $1
                    ) OR EXISTS (
                        SELECT 1 FROM profiles WHERE id = $1 AND role = $3
                    )
                """, user_id, event_id, ADMIN_ROLE)
        return bool(allowed)
