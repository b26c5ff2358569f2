"""
Seat availability.

``holds_seats`` and ``is_hold_lapsed`` are the single definition of hold
liveness. The availability read path (lazy expiry) and the reclaimer both go
through them.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from app.core.constants import BookingStatus, SEAT_HOLDING_STATUSES


def is_hold_lapsed(status: BookingStatus, hold_expires_at: Optional[datetime], now: datetime) -> bool:
    return (
        status == BookingStatus.held
        and hold_expires_at is not None
        and now > hold_expires_at
    )


def holds_seats(status: BookingStatus, hold_expires_at: Optional[datetime], now: datetime) -> bool:
    """True when a (non-deleted) booking in this state still occupies its seats."""
    if status not in SEAT_HOLDING_STATUSES:
        return False
    return not is_hold_lapsed(status, hold_expires_at, now)


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    conflicting_seats: List[str] = field(default_factory=list)


def occupied_seats(
    rows: Iterable[Tuple[str, BookingStatus, Optional[datetime]]],
    now: datetime,
) -> List[str]:
    """
    Seat numbers occupied by live bookings.

    ``rows`` are ``(seat_number, status, hold_expires_at)`` for every seat of
    every non-deleted booking at one showtime.
    """
    seen = set()
    occupied = []
    for seat_number, status, hold_expires_at in rows:
        if seat_number in seen:
            continue
        if holds_seats(status, hold_expires_at, now):
            seen.add(seat_number)
            occupied.append(seat_number)
    return occupied


def find_conflicts(requested: Iterable[str], occupied: Iterable[str]) -> AvailabilityResult:
    """Every requested seat that is occupied, in request order."""
    taken = set(occupied)
    conflicts = []
    for seat_number in requested:
        if seat_number in taken and seat_number not in conflicts:
            conflicts.append(seat_number)
    return AvailabilityResult(available=not conflicts, conflicting_seats=conflicts)


def check_available(store, showtime, requested_seats: Iterable[str], now: datetime) -> AvailabilityResult:
    """Advisory check of ``requested_seats`` against the store's live bookings."""
    rows = store.seat_rows_for_showtime(showtime)
    return find_conflicts(requested_seats, occupied_seats(rows, now))
