from fastapi import APIRouter, Depends, Response
from uuid import UUID
from eventpass import commands
from eventpass.core.dependencies import (
    AuthenticatedUser, TicketingServices, get_authenticated_user, get_services
)
from eventpass.core.exceptions import command_response
from eventpass.models.command import CommandResult
from eventpass.models.registration import (
    CancelledRegistration, IssueTicketRequest, IssuedTicket, TicketQRResponse
)
from eventpass.services import ticket_qr

router = APIRouter()


@router.post(
    "/events/{event_id}/registrations",
    response_model=CommandResult[IssuedTicket],
    status_code=201
)
async def issue_ticket(
    event_id: UUID,
    data: IssueTicketRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Issue a ticket for the authenticated user.
    Returns the signed token to render as QR.
    """
    result = await commands.issue_ticket(services, event_id, user.user_id, data.ticket_type_id)
    return command_response(result, success_status=201)


@router.post(
    "/registrations/{registration_id}/cancel",
    response_model=CommandResult[CancelledRegistration]
)
async def cancel_registration(
    registration_id: UUID,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Cancel a registration.
    Allowed for the holder, the event organizer or an admin.
    """
    result = await commands.cancel_registration(services, registration_id, user.user_id)
    return command_response(result)


@router.get("/registrations/{registration_id}/qr", response_model=TicketQRResponse)
async def get_ticket_qr(
    registration_id: UUID,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Get QR code for a ticket.
    Returns base64 encoded PNG image.
    """
    return await ticket_qr.generate_qr_for_registration(
        services.store, services.access, registration_id, user.user_id
    )


@router.get("/registrations/{registration_id}/qr/image")
async def get_ticket_qr_image(
    registration_id: UUID,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    services: TicketingServices = Depends(get_services)
):
    """
    Get QR code as PNG image directly.
    Useful for downloading or printing.
    """
    qr_bytes = await ticket_qr.generate_qr_png(
        services.store, services.access, registration_id, user.user_id
    )

    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={
            "Content-Disposition": f"inline; filename=ticket-{registration_id}.png",
            "X-Registration-Id": str(registration_id)
        }
    )
