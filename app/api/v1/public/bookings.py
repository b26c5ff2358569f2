from uuid import UUID
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_booking_service, require_service_token
from app.core.constants import DEFAULT_COMBOS
from app.domain.booking import BookingRecord, CustomerInfo, SeatSelection, ShowtimeKey
from app.services.booking_service import BookingService
from app.schemas.booking import (
    Booking as BookingSchema,
    BookingCreate,
    BookingCreateResponse,
    BookingConfirm,
    BookingConfirmResponse,
    BookingCancelResponse,
    BookingStatusResponse,
    BookedSeatsResponse,
    BookingSeatResponse,
    BookingTotals,
    ComboItem,
    ExtraLineResponse,
    ExtrasUpdate,
    ExtrasResponse,
    PaymentCompleted,
    PaymentResponse,
)
from app.schemas.common import (
    ErrorResponse,
    ValidationErrorResponse,
    SeatsUnavailableError,
    InvalidStateErrorResponse,
    ExpiredErrorResponse,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
combos_router = APIRouter(prefix="/combos", tags=["Combos"])

TRANSITION_ERRORS = {
    400: {"model": ValidationErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": InvalidStateErrorResponse},
    410: {"model": ExpiredErrorResponse},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _seats_out(record: BookingRecord) -> List[BookingSeatResponse]:
    return [
        BookingSeatResponse(seat_number=s.seat_number, seat_type=s.seat_type, price=s.price)
        for s in record.seats
    ]


def _extras_out(record: BookingRecord) -> dict:
    return {k: ExtraLineResponse(**line.model_dump()) for k, line in record.extras.items()}


def _totals(record: BookingRecord) -> BookingTotals:
    return BookingTotals(
        seat_subtotal=record.seat_subtotal,
        extras_total=record.extras_total,
        discount=record.discount,
        total=record.total,
    )


def _serialize_booking(record: BookingRecord) -> BookingSchema:
    """Convert a booking record to its schema representation."""
    return BookingSchema(
        id=record.id,
        booking_code=record.booking_code,
        user_id=record.user_id,
        movie_id=record.showtime.movie_id,
        movie_name=record.movie_name,
        cinema=record.showtime.cinema,
        showtime_date=record.showtime.showtime_date,
        showtime_time=record.showtime.showtime_time,
        format_label=record.format_label,
        seats=_seats_out(record),
        extras=_extras_out(record),
        totals=_totals(record),
        full_name=record.full_name,
        phone=record.phone,
        email=record.email,
        note=record.note,
        payment_method=record.payment_method,
        payment_status=record.payment_status,
        status=record.status,
        is_temporary=record.is_temporary,
        hold_expires_at=record.hold_expires_at,
        completed_at=record.completed_at,
        deleted=record.deleted,
        deleted_at=record.deleted_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# ---------------------------------------------------------------------------
# POST /bookings: hold seats for 10 minutes
# ---------------------------------------------------------------------------


@router.post(
    "/",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ValidationErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": SeatsUnavailableError},
        503: {"model": ErrorResponse},
    },
)
def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """
    Hold seats for a showtime.

    - Seat prices are checked against the catalog's price table for the showtime.
    - Seats held by another live booking are rejected with 409 and the full
      list of `unavailable_seats`.
    - The hold lasts 10 minutes; confirm before `hold_expires_at`.
    """
    record = service.create_booking(
        showtime=ShowtimeKey(
            movie_id=data.movie_id,
            cinema=data.cinema,
            showtime_date=data.showtime_date,
            showtime_time=data.showtime_time,
        ),
        seats=[
            SeatSelection(seat_number=s.seat_number, seat_type=s.seat_type, price=s.price)
            for s in data.seats
        ],
        customer=CustomerInfo(**data.customer.model_dump()) if data.customer else None,
        extras={k: v.model_dump() for k, v in data.extras.items()},
        user_id=data.user_id,
    )
    return BookingCreateResponse(
        booking_id=record.id,
        booking_code=record.booking_code,
        status=record.status,
        hold_expires_at=record.hold_expires_at,
        time_remaining=record.time_remaining(service.clock()),
        seats=_seats_out(record),
        extras=_extras_out(record),
        totals=_totals(record),
    )


# ---------------------------------------------------------------------------
# GET /bookings/seats/booked: occupied seats for a showtime (seat map)
# ---------------------------------------------------------------------------


@router.get("/seats/booked", response_model=BookedSeatsResponse)
def get_booked_seats(
    movie_id: str = Query(...),
    cinema: str = Query(...),
    date: date = Query(..., description="Showtime date (YYYY-MM-DD)"),
    time: str = Query(..., pattern=r"^\d{2}:\d{2}$", description="Showtime time (HH:MM)"),
    service: BookingService = Depends(get_booking_service),
):
    """Seat numbers held by live bookings. Lapsed holds count as free."""
    showtime = ShowtimeKey(movie_id=movie_id, cinema=cinema, showtime_date=date, showtime_time=time)
    return BookedSeatsResponse(
        movie_id=movie_id,
        cinema=cinema,
        showtime_date=date,
        showtime_time=time,
        booked_seats=service.booked_seats(showtime),
    )


# ---------------------------------------------------------------------------
# GET /bookings/{id}, GET /bookings/{id}/status
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingSchema, responses={404: {"model": ErrorResponse}})
def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
):
    return _serialize_booking(service.get_booking(booking_id))


@router.get(
    "/{booking_id}/status",
    response_model=BookingStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_booking_status(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
):
    """Status, payment status and seconds left on the hold."""
    view = service.get_status(booking_id)
    return BookingStatusResponse(
        booking_id=view.booking_id,
        status=view.status,
        payment_status=view.payment_status,
        is_expired=view.is_expired,
        time_remaining=view.time_remaining,
        hold_expires_at=view.hold_expires_at,
    )


# ---------------------------------------------------------------------------
# PATCH /bookings/{id}/extras
# ---------------------------------------------------------------------------


@router.patch("/{booking_id}/extras", response_model=ExtrasResponse, responses=TRANSITION_ERRORS)
def update_extras(
    booking_id: UUID,
    body: ExtrasUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Replace the booking's combos. Sending the same selection twice gives the same totals."""
    record = service.attach_extras(booking_id, {k: v.model_dump() for k, v in body.extras.items()})
    return ExtrasResponse(booking_id=record.id, extras=_extras_out(record), totals=_totals(record))


# ---------------------------------------------------------------------------
# PATCH /bookings/{id}/confirm
# ---------------------------------------------------------------------------


@router.patch("/{booking_id}/confirm", response_model=BookingConfirmResponse, responses=TRANSITION_ERRORS)
def confirm_booking(
    booking_id: UUID,
    body: BookingConfirm,
    service: BookingService = Depends(get_booking_service),
):
    """
    Attach customer details and end the hold.
    - Requires full name and a valid mobile number.
    - Returns 410 if the hold already lapsed; the booking is then expired.
    """
    record = service.confirm(booking_id, CustomerInfo(**body.model_dump()))
    return BookingConfirmResponse(
        booking_id=record.id,
        booking_code=record.booking_code,
        status=record.status,
        full_name=record.full_name,
        phone=record.phone,
        email=record.email,
        total=record.total,
    )


# ---------------------------------------------------------------------------
# PATCH /bookings/{id}/payment-completed: called by the payment service
# ---------------------------------------------------------------------------


@router.patch(
    "/{booking_id}/payment-completed",
    response_model=PaymentResponse,
    responses=TRANSITION_ERRORS,
    dependencies=[Depends(require_service_token)],
)
def mark_payment_completed(
    booking_id: UUID,
    body: PaymentCompleted,
    service: BookingService = Depends(get_booking_service),
):
    record = service.mark_paid(
        booking_id,
        {
            "payment_id": body.payment_id,
            "payment_code": body.payment_code,
            "provider": body.provider,
        },
    )
    return PaymentResponse(
        booking_id=record.id,
        status=record.status,
        payment_status=record.payment_status,
    )


# ---------------------------------------------------------------------------
# DELETE /bookings/{id}: cancel
# ---------------------------------------------------------------------------


@router.delete("/{booking_id}", response_model=BookingCancelResponse, responses=TRANSITION_ERRORS)
def cancel_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a held or confirmed (unpaid) booking and release its seats."""
    record = service.cancel(booking_id)
    return BookingCancelResponse(
        booking_id=record.id,
        booking_code=record.booking_code,
        status=record.status,
        cancelled_at=record.deleted_at,
    )


# ---------------------------------------------------------------------------
# GET /combos: concession menu
# ---------------------------------------------------------------------------


@combos_router.get("/", response_model=List[ComboItem])
def list_combos():
    return [ComboItem(id=combo_id, **entry) for combo_id, entry in DEFAULT_COMBOS.items()]
