"""
Tests para la ventana de check-in.
"""
import pytest
from datetime import datetime, timedelta, timezone

from eventpass.utils.check_in_window import (
    CHECK_IN_GRACE, WindowPosition, check_in_window, is_within_check_in_window, window_position
)

START = datetime(2025, 6, 15, 20, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=3)
ONE_SECOND = timedelta(seconds=1)


class TestCheckInWindow:

    def test_grace_is_two_hours(self):
        assert CHECK_IN_GRACE == timedelta(hours=2)
        assert check_in_window(START, END) == (START - CHECK_IN_GRACE, END + CHECK_IN_GRACE)

    def test_boundaries_inclusive(self):
        """Exactamente en los bordes se permite el ingreso."""
        assert is_within_check_in_window(START, END, START - timedelta(hours=2))
        assert is_within_check_in_window(START, END, END + timedelta(hours=2))

    def test_one_second_outside(self):
        assert not is_within_check_in_window(START, END, START - timedelta(hours=2) - ONE_SECOND)
        assert not is_within_check_in_window(START, END, END + timedelta(hours=2) + ONE_SECOND)

    @pytest.mark.parametrize("now,expected", [
        (START - timedelta(hours=3), WindowPosition.BEFORE),
        (START - timedelta(hours=1), WindowPosition.INSIDE),
        (START + timedelta(hours=1), WindowPosition.INSIDE),
        (END + timedelta(hours=1), WindowPosition.INSIDE),
        (END + timedelta(hours=5), WindowPosition.AFTER),
    ])
    def test_position(self, now, expected):
        assert window_position(START, END, now) is expected
