import qrcode
from io import BytesIO
import base64
import binascii
import hashlib
import hmac
import re
from dataclasses import dataclass
from typing import Optional, Union
from datetime import datetime, timezone
from uuid import UUID
from eventpass.core.exceptions import ConfigurationError

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
SIGNATURE_PATTERN = re.compile(r"[0-9a-f]{64}")
TOKEN_SEPARATOR = ":"


@dataclass(frozen=True)
class DecodedToken:
    """Fields of a structurally valid ticket token (signature not yet verified)"""
    event_id: str
    registration_id: str
    issued_at: str
    signature: str

    @property
    def payload(self) -> str:
        return TOKEN_SEPARATOR.join((self.event_id, self.registration_id, self.issued_at))

    @property
    def event_uuid(self) -> UUID:
        return UUID(self.event_id)

    @property
    def registration_uuid(self) -> UUID:
        return UUID(self.registration_id)


def format_issued_at(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2025-03-01T18:00:00.000Z"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TicketTokenCodec:
    """
    Builds and checks ticket tokens.

    Wire format: eventId:registrationId:issuedAt:signature where signature is the
    lowercase hex HMAC-SHA256 of "eventId:registrationId:issuedAt" under the
    server secret. issuedAt is signed and verified byte-for-byte as it appears.
    """

    def __init__(self, secret: Optional[str]):
        if not secret:
            raise ConfigurationError("QR_SECRET_KEY is not configured; refusing to issue unsigned tickets")
        self._key = secret.encode("utf-8")

    def _sign(self, payload: str) -> str:
        return hmac.new(self._key, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def encode(
        self,
        event_id: Union[str, UUID],
        registration_id: Union[str, UUID],
        issued_at: Union[str, datetime]
    ) -> str:
        """Return the signed token for a registration."""
        if isinstance(issued_at, datetime):
            issued_at = format_issued_at(issued_at)
        payload = TOKEN_SEPARATOR.join((str(event_id), str(registration_id), issued_at))
        return f"{payload}{TOKEN_SEPARATOR}{self._sign(payload)}"

    def decode(self, token: str) -> Optional[DecodedToken]:
        """
        Split a token into its four fields.

        The two identifiers are read from the front and the signature from the
        back, so the colons inside an ISO-8601 timestamp are kept intact.
        Returns None for anything that is not shaped like a token.
        """
        if not isinstance(token, str):
            return None

        head = token.split(TOKEN_SEPARATOR, 2)
        if len(head) != 3:
            return None

        event_id, registration_id, rest = head
        issued_at, sep, signature = rest.rpartition(TOKEN_SEPARATOR)
        if not sep or not issued_at:
            return None

        if not UUID_PATTERN.fullmatch(event_id) or not UUID_PATTERN.fullmatch(registration_id):
            return None

        if not SIGNATURE_PATTERN.fullmatch(signature):
            return None

        try:
            datetime.fromisoformat(issued_at)
        except ValueError:
            return None

        return DecodedToken(event_id, registration_id, issued_at, signature)

    def verify(self, token: str) -> bool:
        """Constant-time check of the token signature."""
        decoded = self.decode(token)
        if decoded is None:
            return False

        try:
            provided = binascii.unhexlify(decoded.signature)
        except (binascii.Error, ValueError):
            return False

        expected = binascii.unhexlify(self._sign(decoded.payload))
        if len(provided) != len(expected):
            return False

        return hmac.compare_digest(provided, expected)


def generate_qr_image(data: str, size: int = 10, border: int = 2) -> bytes:
    """
    Generate QR code image as PNG bytes.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)

    return buffer.getvalue()


def generate_qr_base64(data: str, size: int = 10) -> str:
    """Generate QR code as base64 encoded PNG string."""
    img_bytes = generate_qr_image(data, size)
    return base64.b64encode(img_bytes).decode('utf-8')


def generate_data_url(base64_data: str) -> str:
    return f"data:image/png;base64,{base64_data}"
