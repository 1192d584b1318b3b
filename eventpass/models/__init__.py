# Models module for EventPass
from eventpass.models.event import Event, TicketType, EventStatus
from eventpass.models.registration import (
    Registration, RegistrationStatus, IssueTicketRequest, IssuedTicket,
    EventDetails, TicketTypeDetails, CancelledRegistration, TicketQRResponse
)
from eventpass.models.check_in import (
    CheckInMethod, CheckInRequest, CheckInRecord, CheckInResult, CheckInStats
)
from eventpass.models.command import CommandResult, CommandErrorBody
from eventpass.models.notification import Notification, NotificationKind
