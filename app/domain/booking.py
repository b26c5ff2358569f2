from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import BookingStatus, PaymentStatus, SeatType, DEFAULT_PAYMENT_METHOD


class ShowtimeKey(BaseModel):
    """One screening instance; the unit of seat contention."""

    model_config = ConfigDict(frozen=True)

    movie_id: str
    cinema: str
    showtime_date: date
    showtime_time: str


class SeatSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    seat_number: str
    seat_type: SeatType = SeatType.standard
    price: int


class ExtraLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int
    unit_price: int
    line_total: int


class CustomerInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    payment_method: Optional[str] = None


class BookingRecord(BaseModel):
    """
    Immutable snapshot of a booking. Transitions in ``app.domain.state_machine``
    return new records; the store persists them with a status precondition.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[UUID] = None
    booking_code: str
    user_id: Optional[str] = None

    showtime: ShowtimeKey
    movie_name: Optional[str] = None
    format_label: Optional[str] = None

    seats: Tuple[SeatSelection, ...]
    extras: Dict[str, ExtraLine] = Field(default_factory=dict)

    seat_subtotal: int
    extras_total: int = 0
    discount: int = 0
    total: int

    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None

    payment_method: str = DEFAULT_PAYMENT_METHOD
    payment_status: PaymentStatus = PaymentStatus.unpaid
    payment_reference: Dict[str, Any] = Field(default_factory=dict)

    status: BookingStatus = BookingStatus.held
    is_temporary: bool = True
    hold_expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def seat_numbers(self) -> list[str]:
        return [s.seat_number for s in self.seats]

    def time_remaining(self, now: datetime) -> Optional[int]:
        """Seconds left on the hold, or None when the booking has no hold."""
        if self.hold_expires_at is None:
            return None
        return max(0, int((self.hold_expires_at - now).total_seconds()))
