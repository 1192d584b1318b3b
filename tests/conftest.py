"""
Configuración global de pytest y fixtures compartidos.
"""
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# La clave debe existir antes de importar la aplicación
os.environ.setdefault("QR_SECRET_KEY", "test-secret-key-0123456789abcdef")

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from unittest.mock import MagicMock, patch
from uuid import uuid4

from eventpass.main import app
from eventpass.core.dependencies import TicketingServices, get_authenticated_user, get_services
from eventpass.utils.qr_generator import TicketTokenCodec
from tests.utils.factories import FixedClock
from tests.utils.mocks import (
    InMemoryAccessPolicy, InMemoryTicketStore, MockDBConnection,
    RecordingNotificationSink, mock_get_db_connection
)

TEST_SECRET = os.environ["QR_SECRET_KEY"]


# ============================================================================
# Núcleo de ticketing
# ============================================================================

@pytest.fixture
def store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def access(store) -> InMemoryAccessPolicy:
    return InMemoryAccessPolicy(store)


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def codec() -> TicketTokenCodec:
    return TicketTokenCodec(TEST_SECRET)


@pytest.fixture
def services(store, access, notifier, codec, clock) -> TicketingServices:
    return TicketingServices(store=store, access=access, notifier=notifier, codec=codec, clock=clock)


# ============================================================================
# Mock de Base de Datos
# ============================================================================

@pytest.fixture(autouse=True)
def mock_db():
    """Ninguna ruta de la sesión debe tocar PostgreSQL real."""
    conn = MockDBConnection()
    with patch('eventpass.core.middleware.get_db_connection', mock_get_db_connection(conn)):
        yield conn


# ============================================================================
# Cliente HTTP Async
# ============================================================================

@pytest.fixture
async def client(services) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP async con los servicios en memoria."""
    app.dependency_overrides[get_services] = lambda: services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# Mock de Autenticación
# ============================================================================

@pytest.fixture
def login():
    """Autentica las requests como el usuario indicado."""
    def _login(user_id=None, name="Test User"):
        mock_user = MagicMock()
        mock_user.user_id = user_id or uuid4()
        mock_user.email = "test@eventpass.dev"
        mock_user.name = name
        mock_user.role = "user"
        app.dependency_overrides[get_authenticated_user] = lambda: mock_user
        return mock_user

    return _login
