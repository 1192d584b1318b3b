from fastapi import Request
from fastapi.responses import JSONResponse
import logging
from typing import Dict, Any, Optional
from eventpass.core.logging import log_request_context

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Fatal misconfiguration detected at startup (e.g. missing signing key)"""


class CommandError(Exception):
    """Base error for ticketing commands"""

    kind = "database"
    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "kind": self.kind,
        }


class ValidationError(CommandError):
    """Malformed input shape or types"""

    kind = "validation"
    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(CommandError):
    """Authentication related errors"""

    kind = "authentication"
    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Dict[str, Any] = None):
        super().__init__("UNAUTHENTICATED", message, details)


class AuthorizationError(CommandError):
    """Caller lacks the required role or assignment"""

    kind = "authorization"
    status_code = 403

    def __init__(self, message: str = "Access denied", details: Dict[str, Any] = None):
        super().__init__("UNAUTHORIZED", message, details)


class NotFoundError(CommandError):
    """Referenced entity does not exist"""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        message = f"{entity} with id '{entity_id}' not found" if entity_id else f"{entity} not found"
        code = entity.upper().replace(" ", "_") + "_NOT_FOUND"
        super().__init__(code, message)


class BusinessRuleError(CommandError):
    """A named precondition failed"""

    kind = "business_rule"
    status_code = 422


class ConflictError(CommandError):
    """Concurrent or duplicate state clash"""

    kind = "conflict"
    status_code = 409

    def __init__(self, message: str, details: Dict[str, Any] = None, code: str = "DUPLICATE_REGISTRATION"):
        super().__init__(code, message, details)


class DatabaseError(CommandError):
    """Store failure, transaction abort or connectivity loss"""

    kind = "database"
    status_code = 500

    def __init__(self, message: str = "Database operation failed", details: Dict[str, Any] = None):
        super().__init__("DATABASE_ERROR", message, details)


async def command_exception_handler(request: Request, exc: CommandError):
    """Handle command errors raised outside the command boundary (e.g. dependencies)"""

    context = log_request_context(getattr(request.state, 'session_context', None))
    context.update({
        "error_type": exc.__class__.__name__,
        "status_code": exc.status_code,
        "path": str(request.url.path),
        "method": request.method
    })

    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.message}", extra={"context": context})
    else:
        logger.warning(f"API Error: {exc.message}", extra={"context": context})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "data": None,
            "error": exc.to_dict()
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""

    context = log_request_context(getattr(request.state, 'session_context', None))
    context.update({
        "error_type": exc.__class__.__name__,
        "path": str(request.url.path),
        "method": request.method
    })

    logger.error(f"Unexpected error: {str(exc)}", extra={"context": context}, exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "data": None,
            "error": {
                "code": "DATABASE_ERROR",
                "message": "An unexpected error occurred",
                "details": {},
                "kind": "database"
            }
        }
    )


STATUS_BY_KIND = {
    error.kind: error.status_code
    for error in (
        ValidationError, AuthenticationError, AuthorizationError, NotFoundError,
        BusinessRuleError, ConflictError, DatabaseError
    )
}


def command_response(result, success_status: int = 200) -> JSONResponse:
    """Serialize a CommandResult with the status code mapped from its error kind"""
    if result.success:
        status_code = success_status
    else:
        status_code = STATUS_BY_KIND.get(result.error.kind, 500)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
