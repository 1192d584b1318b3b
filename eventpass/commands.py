"""
Ticketing commands.

Each command awaits a service call and always returns a CommandResult;
no exception from the ticketing core escapes this module.
"""
import logging
from typing import Any, Awaitable, Optional, Type, Union
from uuid import UUID

from eventpass.core.exceptions import CommandError, ValidationError
from eventpass.core.dependencies import TicketingServices
from eventpass.models.check_in import CheckInMethod, CheckInResult
from eventpass.models.command import CommandResult
from eventpass.models.registration import CancelledRegistration, IssuedTicket

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = {
    "code": "DATABASE_ERROR",
    "message": "An unexpected error occurred",
    "details": {},
    "kind": "database",
}

# Expected outcomes are not incidents
_QUIET_KINDS = {"business_rule", "conflict"}

MAX_TOKEN_LENGTH = 512
MAX_LOCATION_LENGTH = 100


def _as_uuid(value: Union[str, UUID], field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a UUID", {"field": field})


async def _run(result_type: Type[CommandResult], name: str, call: Awaitable[Any]) -> CommandResult:
    try:
        data = await call
        return result_type.ok(data)
    except CommandError as e:
        if e.kind in _QUIET_KINDS:
            logger.info(f"{name}: {e.code} - {e.message}")
        elif e.kind == "database":
            # Store detail stays in the server log
            logger.error(f"{name}: {e.code} - {e.message} {e.details}", exc_info=True)
            return result_type.fail(UNEXPECTED_ERROR)
        else:
            logger.warning(f"{name}: {e.code} - {e.message}")
        return result_type.fail(e.to_dict())
    except Exception as e:
        logger.error(f"{name}: unexpected error: {e}", exc_info=True)
        return result_type.fail(UNEXPECTED_ERROR)


async def _validated(name: str, result_type: Type[CommandResult], build):
    """Run input validation so its ValidationError also lands in the result"""
    try:
        call = build()
    except CommandError as e:
        logger.warning(f"{name}: {e.code} - {e.message}")
        return result_type.fail(e.to_dict())
    return await _run(result_type, name, call)


async def issue_ticket(
    services: TicketingServices,
    event_id: Union[str, UUID],
    user_id: Union[str, UUID],
    ticket_type_id: Union[str, UUID]
) -> CommandResult[IssuedTicket]:
    """Issue one ticket of ticket_type_id at event_id to user_id."""
    return await _validated("issue_ticket", CommandResult[IssuedTicket], lambda: services.issuance.issue(
        _as_uuid(event_id, "event_id"),
        _as_uuid(user_id, "user_id"),
        _as_uuid(ticket_type_id, "ticket_type_id"),
    ))


async def check_in_ticket(
    services: TicketingServices,
    token: str,
    event_id: Union[str, UUID],
    staff_id: Union[str, UUID],
    method: Union[str, CheckInMethod] = CheckInMethod.QR,
    location: Optional[str] = None,
    device_info: Optional[dict] = None
) -> CommandResult[CheckInResult]:
    """Check in the holder of token at event_id, scanned by staff_id."""

    def build():
        if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
            raise ValidationError("token must be a non-empty string", {"field": "token"})
        if location is not None and len(location) > MAX_LOCATION_LENGTH:
            raise ValidationError(
                f"location must be at most {MAX_LOCATION_LENGTH} characters", {"field": "location"}
            )
        if device_info is not None and not isinstance(device_info, dict):
            raise ValidationError("device_info must be an object", {"field": "device_info"})
        try:
            check_in_method = CheckInMethod(method)
        except ValueError:
            raise ValidationError("method must be 'qr' or 'manual'", {"field": "method"})

        return services.check_in.check_in(
            token,
            _as_uuid(event_id, "event_id"),
            _as_uuid(staff_id, "staff_id"),
            method=check_in_method,
            location=location,
            device_info=device_info,
        )

    return await _validated("check_in_ticket", CommandResult[CheckInResult], build)


async def cancel_registration(
    services: TicketingServices,
    registration_id: Union[str, UUID],
    requester_id: Union[str, UUID]
) -> CommandResult[CancelledRegistration]:
    """Cancel a registration on behalf of requester_id."""
    return await _validated("cancel_registration", CommandResult[CancelledRegistration], lambda: services.cancellation.cancel(
        _as_uuid(registration_id, "registration_id"),
        _as_uuid(requester_id, "requester_id"),
    ))
