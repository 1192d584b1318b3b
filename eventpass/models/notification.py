from pydantic import BaseModel, Field
from enum import Enum


class NotificationKind(str, Enum):
    """Plantillas de notificacion disponibles"""
    REGISTRATION_CONFIRMED = "registration_confirmed"
    ATTENDEE_CHECKED_IN = "attendee_checked_in"
    REGISTRATION_CANCELLED = "registration_cancelled"


class Notification(BaseModel):
    """Fire-and-forget send request"""
    recipient: str = Field(..., description="User id of the recipient")
    template_kind: NotificationKind
    template_data: dict = Field(default_factory=dict)
