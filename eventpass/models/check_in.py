from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import UUID


class CheckInMethod(str, Enum):
    """How the attendee was checked in"""
    QR = "qr"
    MANUAL = "manual"


class CheckInRequest(BaseModel):
    """Request para registrar ingreso"""
    token: str = Field(..., min_length=1, max_length=512, description="Datos escaneados del QR")
    event_id: UUID = Field(..., description="Evento del escaner")
    method: CheckInMethod = CheckInMethod.QR
    location: Optional[str] = Field(None, max_length=100, description="Puerta de entrada")
    device_info: Optional[dict] = None


class CheckInRecord(BaseModel):
    """Registro de auditoria de un check-in"""
    id: UUID
    registration_id: UUID
    staff_id: UUID
    method: CheckInMethod = CheckInMethod.QR
    location: Optional[str] = None
    device_info: Optional[dict] = None
    timestamp: datetime


class CheckInResult(BaseModel):
    """Respuesta de check-in exitoso"""
    check_in_id: UUID
    registration_id: UUID
    attendee_name: Optional[str] = None
    ticket_type: Optional[str] = None
    checked_in_at: datetime
    message: str


class CheckInStats(BaseModel):
    """Estadisticas de check-in"""
    event_id: UUID
    total_tickets: int
    checked_in: int
    pending: int
    check_in_percentage: float
    last_check_in: Optional[datetime] = None
