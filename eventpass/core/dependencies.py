from fastapi import Request
from eventpass.core.middleware import SessionContext, get_session_context
from eventpass.core.exceptions import AuthenticationError
from eventpass.core.access import AccessPolicy, PostgresAccessPolicy
from eventpass.services.cancellation import CancellationService
from eventpass.services.check_in import CheckInService
from eventpass.services.notifications import NotificationSink
from eventpass.services.ticket_issuance import TicketIssuanceService
from eventpass.stores.base import TicketStore
from eventpass.stores.postgres import PostgresTicketStore
from eventpass.utils.clock import Clock, utc_now
from eventpass.utils.qr_generator import TicketTokenCodec
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


class TicketingServices:
    """The ticketing core wired to its collaborators"""

    def __init__(
        self,
        store: TicketStore,
        access: AccessPolicy,
        notifier: NotificationSink,
        codec: TicketTokenCodec,
        clock: Clock = utc_now
    ):
        self.store = store
        self.access = access
        self.notifier = notifier
        self.codec = codec
        self.issuance = TicketIssuanceService(store, codec, notifier, clock)
        self.check_in = CheckInService(store, codec, access, notifier, clock)
        self.cancellation = CancellationService(store, access, notifier, clock)


def build_services(secret_key: str, notifier: NotificationSink) -> TicketingServices:
    """
    Wire the PostgreSQL-backed services.
    Raises ConfigurationError when the signing key is missing.
    """
    codec = TicketTokenCodec(secret_key)
    return TicketingServices(
        store=PostgresTicketStore(),
        access=PostgresAccessPolicy(),
        notifier=notifier,
        codec=codec,
    )


def get_services(request: Request) -> TicketingServices:
    """Dependency returning the services built at startup"""
    return request.app.state.services


def require_authenticated_session(request: Request) -> SessionContext:
    """
    Dependency that requires a valid authenticated session.
    Raises AuthenticationError if not authenticated.
    """
    session = get_session_context(request)
    if not session.is_valid:
        raise AuthenticationError("Authentication required")
    return session


class AuthenticatedUser:
    """
    Dependency class that provides the caller's identity.
    Use this for endpoints that require authentication.
    """
    def __init__(self, request: Request):
        self.session = require_authenticated_session(request)

    @property
    def user_id(self) -> UUID:
        return UUID(str(self.session.user_id))

    @property
    def email(self) -> str:
        return self.session.email

    @property
    def name(self) -> str:
        return self.session.name

    @property
    def role(self) -> str:
        return self.session.role


def get_authenticated_user(request: Request) -> AuthenticatedUser:
    """Dependency to get authenticated user"""
    return AuthenticatedUser(request)
