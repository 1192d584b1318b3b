import logging
import time
from typing import Optional, Dict, Any
from fastapi import Request
from eventpass.database import get_db_connection

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session-token"


class SessionContext:
    """Session context object"""
    def __init__(self, session_data: Optional[Dict[str, Any]] = None):
        if session_data:
            self.user_id = session_data['user_id']
            self.email = session_data['email']
            self.name = session_data['name']
            self.role = session_data.get('role') or 'user'
            self.expires_at = session_data['expires_at']
            self.is_valid = True
        else:
            self.user_id = None
            self.email = None
            self.name = None
            self.role = None
            self.expires_at = None
            self.is_valid = False


def get_session_token(request: Request) -> Optional[str]:
    """Session token from the cookie, or from a Bearer header for scanner devices"""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token

    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


async def get_session_from_request(request: Request) -> Optional[dict]:
    """
    Resolve the session token against sessions joined with profiles.
    Returns None for missing, expired or inactive sessions.
    """
    session_token = get_session_token(request)
    if not session_token:
        return None

    async with get_db_connection(use_transaction=False) as conn:
        row = await conn.fetchrow("""
            SELECT s.user_id, s.expires_at, p.email, p.name, p.role
            FROM sessions s
            JOIN profiles p ON p.id = s.user_id
            WHERE s.id = $1 AND s.expires_at > NOW() AND s.is_active = true
            LIMIT 1
        """, session_token)

    return dict(row) if row else None


async def session_validation_middleware(request: Request, call_next):
    """
    Middleware to validate session for protected endpoints
    Sets request.state.session_context for use in endpoints
    """
    path = request.url.path
    public_endpoints = ['/docs', '/redoc', '/openapi.json', '/health']

    if path == '/' or any(path.startswith(endpoint) for endpoint in public_endpoints):
        request.state.session_context = SessionContext()
        return await call_next(request)

    try:
        session_data = await get_session_from_request(request)
        request.state.session_context = SessionContext(session_data)
    except Exception as e:
        # Treated as anonymous; protected endpoints answer 401
        logger.warning(f"Session validation error for path {path}: {e}")
        request.state.session_context = SessionContext()

    return await call_next(request)


def get_session_context(request: Request) -> SessionContext:
    """Helper function to get session context from request"""
    return getattr(request.state, 'session_context', SessionContext())


async def request_logging_middleware(request: Request, call_next):
    """Simple request logging middleware"""
    start_time = time.time()

    method = request.method
    path = request.url.path

    response = await call_next(request)

    duration = round((time.time() - start_time) * 1000, 2)
    logger.info(f"{method} {path} | {response.status_code} | {duration}ms")

    return response
