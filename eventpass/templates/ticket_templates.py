"""
Ticket lifecycle email templates for EventPass
Plain text format
"""
from datetime import datetime
from typing import Optional, Tuple
from eventpass.config import settings
from eventpass.models.notification import Notification, NotificationKind


def _format_date(value) -> str:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.strftime('%d/%m/%Y a las %H:%M')
    return 'Por confirmar'


def get_registration_confirmed_email_body(
    attendee_name: Optional[str],
    event_title: str,
    event_start,
    location: Optional[str],
    ticket_type: str,
    registration_id: str
) -> str:
    """
    Generate plain text confirmation email body

    Args:
        attendee_name: Name of the ticket holder (may be unknown)
        event_title: Title of the event
        event_start: Event start (datetime or ISO string)
        location: Venue, if any
        ticket_type: Ticket type name
        registration_id: Registration the QR code belongs to

    Returns:
        Plain text email body
    """
    tickets_url = f"{settings.frontend_url}/registrations/{registration_id}"

    return f"""Hola{f' {attendee_name}' if attendee_name else ''}!

Tu registro para {event_title} esta confirmado.

DETALLE DEL BOLETO
--------------------
Evento: {event_title}
Fecha: {_format_date(event_start)}
{f"Lugar: {location}" if location else ""}
Tipo de boleto: {ticket_type}

TU CODIGO QR
--------------------
Presenta tu codigo QR en la entrada:
{tickets_url}

IMPORTANTE
--------------------
- El ingreso abre 2 horas antes del evento
- Cada codigo QR es valido para un solo ingreso
- No compartas tu codigo QR

----
{settings.aws_ses_from_name}
"""


def get_attendee_checked_in_email_body(
    event_title: str,
    checked_in_at,
    location: Optional[str] = None
) -> str:
    """Generate plain text check-in receipt"""
    return f"""Bienvenido a {event_title}!

Registramos tu ingreso el {_format_date(checked_in_at)}{f' por {location}' if location else ''}.

Si no fuiste tu, responde a este correo.

----
{settings.aws_ses_from_name}
"""


def get_registration_cancelled_email_body(
    event_title: str,
    cancelled_at,
    refund_eligible: bool
) -> str:
    refund_line = (
        "Tu reembolso sera procesado en los proximos dias habiles."
        if refund_eligible else
        "Este boleto no genera reembolso."
    )
    return f"""Hola!

Tu registro para {event_title} fue cancelado el {_format_date(cancelled_at)}.

{refund_line}

----
{settings.aws_ses_from_name}
"""


def render_notification(notification: Notification) -> Tuple[str, str]:
    """Return (subject, text_body) for a notification"""
    data = notification.template_data
    event_title = data.get('event_title', 'tu evento')

    if notification.template_kind == NotificationKind.REGISTRATION_CONFIRMED:
        return (
            f"Tu boleto para {event_title}",
            get_registration_confirmed_email_body(
                attendee_name=data.get('attendee_name'),
                event_title=event_title,
                event_start=data.get('event_start'),
                location=data.get('location'),
                ticket_type=data.get('ticket_type', ''),
                registration_id=data.get('registration_id', ''),
            ),
        )

    if notification.template_kind == NotificationKind.ATTENDEE_CHECKED_IN:
        return (
            f"Ingreso registrado en {event_title}",
            get_attendee_checked_in_email_body(
                event_title=event_title,
                checked_in_at=data.get('checked_in_at'),
                location=data.get('location'),
            ),
        )

    return (
        f"Registro cancelado para {event_title}",
        get_registration_cancelled_email_body(
            event_title=event_title,
            cancelled_at=data.get('cancelled_at'),
            refund_eligible=bool(data.get('refund_eligible')),
        ),
    )
