from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RegistrationStatus(str, Enum):
    """Estados de una registracion (checked_in y cancelled son terminales)"""
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"


class Registration(BaseModel):
    """A ticket held by a user for one ticket type of an event"""
    id: UUID
    event_id: UUID
    ticket_type_id: UUID
    user_id: UUID
    status: RegistrationStatus = RegistrationStatus.CONFIRMED
    signed_token: str
    created_at: datetime
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None

    # Joined display info (may be absent)
    attendee_name: Optional[str] = None
    ticket_type_name: Optional[str] = None
    ticket_price: Optional[Decimal] = None

    class Config:
        from_attributes = True


class IssueTicketRequest(BaseModel):
    """Request para emitir un ticket"""
    ticket_type_id: UUID = Field(..., description="Tipo de ticket a emitir")


class EventDetails(BaseModel):
    title: str
    start_at: datetime
    end_at: datetime
    location: Optional[str] = None


class TicketTypeDetails(BaseModel):
    name: str
    price: Decimal


class IssuedTicket(BaseModel):
    """Respuesta al emitir un ticket"""
    registration_id: UUID
    token: str
    status: RegistrationStatus = RegistrationStatus.CONFIRMED
    issued_at: datetime
    event: EventDetails
    ticket_type: TicketTypeDetails


class CancelledRegistration(BaseModel):
    """Respuesta al cancelar una registracion"""
    registration_id: UUID
    status: RegistrationStatus = RegistrationStatus.CANCELLED
    cancelled_at: datetime
    refund_eligible: bool


class TicketQRResponse(BaseModel):
    """Token del ticket renderizado como QR"""
    registration_id: UUID
    qr_code_base64: str
    qr_code_data_url: str
    generated_at: datetime
