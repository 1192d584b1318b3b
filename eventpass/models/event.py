from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class EventStatus(str, Enum):
    """Event lifecycle states"""
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Event(BaseModel):
    """Event as seen by the ticketing core"""
    id: UUID
    organizer_id: Optional[UUID] = None
    title: str = ""
    location: Optional[str] = None
    start_at: datetime
    end_at: datetime
    status: EventStatus
    capacity: int = Field(..., ge=0, description="Max confirmed + checked-in registrations")

    class Config:
        from_attributes = True


class TicketType(BaseModel):
    """Ticket category with its remaining inventory"""
    id: UUID
    event_id: UUID
    name: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(..., gt=0)
    available: int = Field(..., ge=0)

    class Config:
        from_attributes = True
