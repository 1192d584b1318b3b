from datetime import datetime, timezone
from typing import Callable

# Injected into the services so tests can pin "now"
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
