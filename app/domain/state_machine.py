"""
Booking lifecycle.

    held ──confirm──> confirmed_pending_payment ──mark_paid──> completed
      │                        │
      ├──cancel────────────────┴──> cancelled
      └──expire (system)──────────> expired

Every transition is a pure function of (record, inputs, now) returning a new
``BookingRecord`` or raising a ``BookingError``. Persisting the result with a
status precondition is the caller's job.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

from app.core.config import settings
from app.core.constants import (
    BookingStatus,
    PaymentStatus,
    TERMINAL_STATUSES,
    EXTRAS_EDITABLE_STATUSES,
    DEFAULT_PAYMENT_METHOD,
)
from app.core.exceptions import ValidationError, InvalidStateError, ExpiredError
from app.domain.availability import is_hold_lapsed
from app.domain.booking import BookingRecord, CustomerInfo, ExtraLine, SeatSelection, ShowtimeKey
from app.utils.validators import is_valid_phone, normalize_phone


def hold_duration() -> timedelta:
    return timedelta(minutes=settings.HOLD_DURATION_MINUTES)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_seats(seats: Iterable[SeatSelection]) -> tuple:
    seats = tuple(seats)
    if not seats:
        raise ValidationError("At least one seat must be selected", fields=["seats"])

    seat_errors = []
    seen = set()
    for seat in seats:
        if not seat.seat_number:
            seat_errors.append({"seat_number": seat.seat_number, "reason": "missing seat number"})
        elif seat.seat_number in seen:
            seat_errors.append({"seat_number": seat.seat_number, "reason": "duplicate seat number"})
        seen.add(seat.seat_number)
        if seat.price is None or seat.price <= 0:
            seat_errors.append({"seat_number": seat.seat_number, "reason": "price must be positive"})
    if seat_errors:
        raise ValidationError("Invalid seat selection", seat_errors=seat_errors)
    return seats


def _validate_customer(customer: CustomerInfo) -> None:
    missing = []
    if not customer.full_name or not customer.full_name.strip():
        missing.append("full_name")
    if not customer.phone:
        missing.append("phone")
    if missing:
        raise ValidationError("Full name and phone number are required", fields=missing)
    if not is_valid_phone(customer.phone):
        raise ValidationError("Invalid phone number", fields=["phone"])


def build_extras(
    extras_request: Mapping[str, Mapping[str, Any]],
    menu: Mapping[str, Mapping[str, Any]],
) -> Dict[str, ExtraLine]:
    """
    Turn ``{combo_id: {"quantity": n, "price"?: p, "name"?: s}}`` into priced
    lines using the menu. Zero-quantity entries are dropped.
    """
    lines: Dict[str, ExtraLine] = {}
    errors = []
    for combo_id, item in extras_request.items():
        quantity = item.get("quantity") or 0
        if quantity < 0:
            errors.append(f"extras.{combo_id}.quantity")
            continue
        if quantity == 0:
            continue
        entry = menu.get(combo_id)
        if entry is None:
            errors.append(f"extras.{combo_id}")
            continue
        unit_price = entry["price"]
        client_price = item.get("price")
        if client_price is not None and client_price != unit_price:
            errors.append(f"extras.{combo_id}.price")
            continue
        lines[combo_id] = ExtraLine(
            name=entry.get("name") or item.get("name") or combo_id,
            quantity=quantity,
            unit_price=unit_price,
            line_total=unit_price * quantity,
        )
    if errors:
        raise ValidationError("Invalid extras selection", fields=errors)
    return lines


def _expired_error(record: BookingRecord, now: datetime) -> ExpiredError:
    return ExpiredError(record.id, record.hold_expires_at, expired_record=expire(record, now))


def _reject_expired(record: BookingRecord) -> None:
    # Already terminalized by the reclaimer
    if record.status == BookingStatus.expired:
        raise ExpiredError(record.id, record.hold_expires_at)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def create(
    booking_code: str,
    showtime: ShowtimeKey,
    seats: Iterable[SeatSelection],
    now: datetime,
    movie_name: Optional[str] = None,
    format_label: Optional[str] = None,
    customer: Optional[CustomerInfo] = None,
    user_id: Optional[str] = None,
) -> BookingRecord:
    """New booking in ``held`` with a hold expiring ``HOLD_DURATION_MINUTES`` from now."""
    seats = _validate_seats(seats)

    customer = customer or CustomerInfo()
    if customer.phone and not is_valid_phone(customer.phone):
        raise ValidationError("Invalid phone number", fields=["phone"])

    subtotal = sum(seat.price for seat in seats)
    return BookingRecord(
        booking_code=booking_code,
        user_id=user_id,
        showtime=showtime,
        movie_name=movie_name,
        format_label=format_label,
        seats=seats,
        extras={},
        seat_subtotal=subtotal,
        extras_total=0,
        discount=0,
        total=subtotal,
        full_name=customer.full_name,
        phone=normalize_phone(customer.phone) if customer.phone else None,
        email=customer.email,
        note=customer.note,
        payment_method=customer.payment_method or DEFAULT_PAYMENT_METHOD,
        status=BookingStatus.held,
        is_temporary=True,
        hold_expires_at=now + hold_duration(),
        created_at=now,
        updated_at=now,
    )


def attach_extras(
    record: BookingRecord,
    extras_request: Mapping[str, Mapping[str, Any]],
    menu: Mapping[str, Mapping[str, Any]],
    now: datetime,
) -> BookingRecord:
    """Replace the booking's extras and recompute totals. Idempotent."""
    _reject_expired(record)
    if record.deleted or record.status not in EXTRAS_EDITABLE_STATUSES:
        raise InvalidStateError(record.id, record.status.value, "update extras of")
    if is_hold_lapsed(record.status, record.hold_expires_at, now):
        raise _expired_error(record, now)

    extras = build_extras(extras_request, menu)
    extras_total = sum(line.line_total for line in extras.values())
    return record.model_copy(update={
        "extras": extras,
        "extras_total": extras_total,
        "total": record.seat_subtotal + extras_total - record.discount,
        "updated_at": now,
    })


def confirm(record: BookingRecord, customer: CustomerInfo, now: datetime) -> BookingRecord:
    _reject_expired(record)
    if record.deleted or record.status != BookingStatus.held:
        raise InvalidStateError(record.id, record.status.value, "confirm")
    if is_hold_lapsed(record.status, record.hold_expires_at, now):
        raise _expired_error(record, now)

    _validate_customer(customer)
    return record.model_copy(update={
        "full_name": customer.full_name.strip(),
        "phone": normalize_phone(customer.phone),
        "email": customer.email or record.email or "",
        "note": customer.note or record.note or "",
        "payment_method": customer.payment_method or record.payment_method,
        "status": BookingStatus.confirmed_pending_payment,
        "is_temporary": False,
        "hold_expires_at": None,
        "updated_at": now,
    })


def mark_paid(record: BookingRecord, payment_reference: Mapping[str, Any], now: datetime) -> BookingRecord:
    """
    Payment completed. Accepted from ``confirmed_pending_payment``, and from a
    live ``held`` booking that already carries the customer's name and phone.
    """
    _reject_expired(record)
    if record.deleted:
        raise InvalidStateError(record.id, record.status.value, "mark as paid")
    if record.status == BookingStatus.held:
        if is_hold_lapsed(record.status, record.hold_expires_at, now):
            raise _expired_error(record, now)
        if not record.full_name or not is_valid_phone(record.phone):
            raise InvalidStateError(record.id, record.status.value, "mark as paid")
    elif record.status != BookingStatus.confirmed_pending_payment:
        raise InvalidStateError(record.id, record.status.value, "mark as paid")

    return record.model_copy(update={
        "payment_status": PaymentStatus.paid,
        "payment_reference": {k: v for k, v in payment_reference.items() if v is not None},
        "status": BookingStatus.completed,
        "completed_at": record.completed_at or now,
        "is_temporary": False,
        "hold_expires_at": None,
        "updated_at": now,
    })


def cancel(record: BookingRecord, now: datetime) -> BookingRecord:
    if record.deleted or record.status in TERMINAL_STATUSES:
        raise InvalidStateError(record.id, record.status.value, "cancel")
    return record.model_copy(update={
        "status": BookingStatus.cancelled,
        "is_temporary": False,
        "hold_expires_at": None,
        "deleted": True,
        "deleted_at": now,
        "updated_at": now,
    })


def expire(record: BookingRecord, now: datetime) -> BookingRecord:
    """System-only: terminalize a held booking whose hold has lapsed."""
    if record.deleted or not is_hold_lapsed(record.status, record.hold_expires_at, now):
        raise InvalidStateError(record.id, record.status.value, "expire")
    return record.model_copy(update={
        "status": BookingStatus.expired,
        "is_temporary": False,
        "hold_expires_at": None,
        "deleted": True,
        "deleted_at": now,
        "updated_at": now,
    })
