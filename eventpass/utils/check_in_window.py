from datetime import datetime, timedelta
from enum import Enum

# Fixed business rule, not configurable per event
CHECK_IN_GRACE = timedelta(hours=2)


class WindowPosition(str, Enum):
    BEFORE = "before"
    INSIDE = "inside"
    AFTER = "after"


def check_in_window(event_start: datetime, event_end: datetime) -> tuple[datetime, datetime]:
    """Return the (opens, closes) instants of the check-in window."""
    return event_start - CHECK_IN_GRACE, event_end + CHECK_IN_GRACE


def window_position(event_start: datetime, event_end: datetime, now: datetime) -> WindowPosition:
    opens, closes = check_in_window(event_start, event_end)
    if now < opens:
        return WindowPosition.BEFORE
    if now > closes:
        return WindowPosition.AFTER
    return WindowPosition.INSIDE


def is_within_check_in_window(event_start: datetime, event_end: datetime, now: datetime) -> bool:
    """True iff event_start - 2h <= now <= event_end + 2h (both bounds inclusive)."""
    return window_position(event_start, event_end, now) is WindowPosition.INSIDE
