from fastapi import APIRouter, Depends
from uuid import UUID
from eventpass import commands
from eventpass.core.dependencies import (
    AuthenticatedUser, TicketingServices, get_authenticated_user, get_services
)
from eventpass.core.exceptions import command_response
from eventpass.models.check_in import CheckInRequest, CheckInResult, CheckInStats
from eventpass.models.command import CommandResult

router = APIRouter()


@router.post("", response_model=CommandResult[CheckInResult])
async def check_in(
    data: CheckInRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Validate a scanned QR code at the event entrance.

    Used by staff assigned to the event. A valid ticket is marked
    checked_in; scanning it again returns ALREADY_CHECKED_IN.
    """
    result = await commands.check_in_ticket(
        services,
        data.token,
        data.event_id,
        user.user_id,
        method=data.method,
        location=data.location,
        device_info=data.device_info,
    )
    return command_response(result)


@router.get("/stats/{event_id}", response_model=CheckInStats)
async def get_check_in_stats(
    event_id: UUID,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Get check-in statistics for an event.
    Shows total tickets, checked in, pending, and percentage.
    """
    return await services.check_in.get_stats(event_id, user.user_id)
