from __future__ import annotations

from typing import Annotated, Dict, Optional, List
from pydantic import BaseModel, EmailStr, Field, UUID4, field_validator
from datetime import date, datetime

from app.core.constants import BookingStatus, PaymentStatus, SeatType


# --- Requests ---

class SeatRequest(BaseModel):
    seat_number: Annotated[str, Field(min_length=1, max_length=10)]
    seat_type: SeatType = SeatType.standard
    price: int


class ExtraItemRequest(BaseModel):
    quantity: int
    name: Optional[str] = None
    price: Optional[int] = None  # must match the menu when given


class CustomerFields(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    note: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def parse_empty_str_to_none(cls, v):
        if v == "":
            return None
        return v


# Booking: Create (POST /bookings)
class BookingCreate(BaseModel):
    movie_id: str
    cinema: str
    showtime_date: date
    showtime_time: Annotated[str, Field(pattern=r"^\d{2}:\d{2}$")]
    seats: Annotated[List[SeatRequest], Field(max_length=10)] = []
    customer: Optional[CustomerFields] = None
    extras: Dict[str, ExtraItemRequest] = {}
    user_id: Optional[str] = None


# Booking: Extras (PATCH /bookings/{id}/extras)
class ExtrasUpdate(BaseModel):
    extras: Dict[str, ExtraItemRequest]


# Booking: Confirm (PATCH /bookings/{id}/confirm)
class BookingConfirm(CustomerFields):
    pass


# Booking: Payment callback (PATCH /bookings/{id}/payment-completed)
class PaymentCompleted(BaseModel):
    payment_id: Optional[str] = None
    payment_code: Optional[str] = None
    provider: Optional[str] = None


# --- Responses ---

class BookingSeatResponse(BaseModel):
    seat_number: str
    seat_type: SeatType
    price: int


class ExtraLineResponse(BaseModel):
    name: str
    quantity: int
    unit_price: int
    line_total: int


class BookingTotals(BaseModel):
    seat_subtotal: int
    extras_total: int
    discount: int
    total: int


class BookingCreateResponse(BaseModel):
    booking_id: UUID4
    booking_code: str
    status: BookingStatus
    hold_expires_at: Optional[datetime] = None
    time_remaining: Optional[int] = None
    seats: List[BookingSeatResponse]
    extras: Dict[str, ExtraLineResponse] = {}
    totals: BookingTotals


class ExtrasResponse(BaseModel):
    booking_id: UUID4
    extras: Dict[str, ExtraLineResponse]
    totals: BookingTotals


class BookingConfirmResponse(BaseModel):
    booking_id: UUID4
    booking_code: str
    status: BookingStatus
    full_name: str
    phone: str
    email: Optional[str] = None
    total: int


class PaymentResponse(BaseModel):
    booking_id: UUID4
    status: BookingStatus
    payment_status: PaymentStatus


# Booking: Cancel response (DELETE /bookings/{id})
class BookingCancelResponse(BaseModel):
    booking_id: UUID4
    booking_code: str
    status: BookingStatus
    cancelled_at: datetime


class BookingStatusResponse(BaseModel):
    booking_id: UUID4
    status: BookingStatus
    payment_status: PaymentStatus
    is_expired: bool
    time_remaining: Optional[int] = None
    hold_expires_at: Optional[datetime] = None


class BookedSeatsResponse(BaseModel):
    movie_id: str
    cinema: str
    showtime_date: date
    showtime_time: str
    booked_seats: List[str]


class ComboItem(BaseModel):
    id: str
    name: str
    price: int
    description: Optional[str] = None


# Booking: Full response (GET /bookings/{id})
class Booking(BaseModel):
    id: UUID4
    booking_code: str
    user_id: Optional[str] = None
    movie_id: str
    movie_name: Optional[str] = None
    cinema: str
    showtime_date: date
    showtime_time: str
    format_label: Optional[str] = None
    seats: List[BookingSeatResponse]
    extras: Dict[str, ExtraLineResponse] = {}
    totals: BookingTotals
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    payment_method: str
    payment_status: PaymentStatus
    status: BookingStatus
    is_temporary: bool
    hold_expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
