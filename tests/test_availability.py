from datetime import datetime, timedelta, timezone

import pytest

from app.core.constants import BookingStatus
from app.domain.availability import find_conflicts, holds_seats, is_hold_lapsed, occupied_seats

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
PAST = NOW - timedelta(minutes=1)
FUTURE = NOW + timedelta(minutes=1)


@pytest.mark.parametrize(
    "status, expires_at, expected",
    [
        (BookingStatus.held, FUTURE, True),
        (BookingStatus.held, None, True),
        (BookingStatus.held, PAST, False),
        (BookingStatus.confirmed_pending_payment, None, True),
        (BookingStatus.completed, None, True),
        (BookingStatus.cancelled, None, False),
        (BookingStatus.expired, None, False),
    ],
)
def test_holds_seats(status, expires_at, expected):
    assert holds_seats(status, expires_at, NOW) is expected


def test_hold_lapses_strictly_after_expiry():
    assert is_hold_lapsed(BookingStatus.held, NOW, NOW) is False
    assert is_hold_lapsed(BookingStatus.held, PAST, NOW) is True
    # Only holds lapse
    assert is_hold_lapsed(BookingStatus.confirmed_pending_payment, PAST, NOW) is False


def test_occupied_seats_ignores_lapsed_holds():
    rows = [
        ("A1", BookingStatus.held, FUTURE),
        ("A2", BookingStatus.held, PAST),
        ("B1", BookingStatus.completed, None),
        ("B2", BookingStatus.confirmed_pending_payment, None),
    ]
    assert occupied_seats(rows, NOW) == ["A1", "B1", "B2"]


def test_find_conflicts_names_every_conflicting_seat():
    result = find_conflicts(["A1", "A2", "A3", "B1"], ["B1", "A1", "C9"])
    assert result.available is False
    assert result.conflicting_seats == ["A1", "B1"]


def test_find_conflicts_available():
    result = find_conflicts(["A3", "A4"], ["A1", "A2"])
    assert result.available is True
    assert result.conflicting_seats == []
