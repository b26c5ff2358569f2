"""
Booking use cases.

Creation: catalog lookup → price validation → availability check → create →
atomic insert. Every later action loads the booking, applies one
state-machine transition and writes it back conditionally on the status that
was read. A lost race is re-read and reported, never overwritten.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional
from uuid import UUID

from app.core.constants import BookingStatus, PaymentStatus, BOOKING_CODE_ATTEMPTS, DEFAULT_COMBOS
from app.core.exceptions import (
    ConflictError,
    DuplicateBookingCodeError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    StaleStateError,
    StoreUnavailableError,
    ValidationError,
)
from app.db.booking_store import BookingStore
from app.domain import state_machine
from app.domain.availability import check_available, is_hold_lapsed, occupied_seats
from app.domain.booking import BookingRecord, CustomerInfo, SeatSelection, ShowtimeKey
from app.services.catalog import ShowtimePricing
from app.utils.booking_code import make_unique_booking_code
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingStatusView:
    booking_id: UUID
    status: BookingStatus
    payment_status: PaymentStatus
    is_expired: bool
    time_remaining: Optional[int]
    hold_expires_at: Optional[datetime]


def validate_seat_prices(seats: Iterable[SeatSelection], pricing: ShowtimePricing) -> None:
    """Reject any seat whose type is unknown or whose price differs from the catalog."""
    seat_errors = []
    for seat in seats:
        expected = pricing.seat_price_by_type.get(seat.seat_type.value)
        if expected is None:
            seat_errors.append({
                "seat_number": seat.seat_number,
                "seat_type": seat.seat_type.value,
                "reason": "seat type has no price for this showtime",
            })
        elif seat.price != expected:
            seat_errors.append({
                "seat_number": seat.seat_number,
                "seat_type": seat.seat_type.value,
                "expected_price": expected,
                "received_price": seat.price,
                "reason": "price mismatch",
            })
    if seat_errors:
        raise ValidationError("Seat prices do not match the showtime price table", seat_errors=seat_errors)


class BookingService:
    def __init__(
        self,
        store: BookingStore,
        catalog,
        clock: Callable[[], datetime] = utcnow,
        menu: Mapping[str, Mapping[str, Any]] = DEFAULT_COMBOS,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.menu = menu

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_booking(self, booking_id: UUID) -> BookingRecord:
        record = self.store.get(booking_id)
        if record is None:
            raise NotFoundError("Booking", booking_id)
        return record

    def get_status(self, booking_id: UUID) -> BookingStatusView:
        record = self.get_booking(booking_id)
        now = self.clock()
        return BookingStatusView(
            booking_id=record.id,
            status=record.status,
            payment_status=record.payment_status,
            is_expired=(
                record.status == BookingStatus.expired
                or is_hold_lapsed(record.status, record.hold_expires_at, now)
            ),
            time_remaining=record.time_remaining(now),
            hold_expires_at=record.hold_expires_at,
        )

    def booked_seats(self, showtime: ShowtimeKey) -> List[str]:
        return occupied_seats(self.store.seat_rows_for_showtime(showtime), self.clock())

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    def create_booking(
        self,
        showtime: ShowtimeKey,
        seats: List[SeatSelection],
        customer: Optional[CustomerInfo] = None,
        extras: Optional[Mapping[str, Mapping[str, Any]]] = None,
        user_id: Optional[str] = None,
    ) -> BookingRecord:
        pricing = self.catalog.get_showtime_and_pricing(
            showtime.movie_id, showtime.cinema, showtime.showtime_date, showtime.showtime_time
        )
        validate_seat_prices(seats, pricing)

        now = self.clock()
        seat_numbers = [s.seat_number for s in seats]
        availability = check_available(self.store, showtime, seat_numbers, now)
        if not availability.available:
            logger.info("Seats %s unavailable at %s", availability.conflicting_seats, showtime)
            raise ConflictError(availability.conflicting_seats)

        record = state_machine.create(
            booking_code=make_unique_booking_code(self.store.code_exists),
            showtime=showtime,
            seats=seats,
            now=now,
            movie_name=pricing.movie_name,
            format_label=pricing.format_label,
            customer=customer,
            user_id=user_id,
        )
        if extras:
            record = state_machine.attach_extras(record, extras, self.menu, now)

        for _ in range(BOOKING_CODE_ATTEMPTS):
            try:
                record = self.store.insert(record, now)
                break
            except DuplicateBookingCodeError as exc:
                logger.warning("Booking code %s collided, drawing a new one", exc.booking_code)
                record = record.model_copy(
                    update={"booking_code": make_unique_booking_code(self.store.code_exists)}
                )
        else:
            raise StoreUnavailableError("create booking")

        logger.info(
            "Booking %s created: %d seat(s) held until %s",
            record.booking_code, len(record.seats), record.hold_expires_at,
        )
        return record

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def attach_extras(self, booking_id: UUID, extras: Mapping[str, Mapping[str, Any]]) -> BookingRecord:
        return self._transition(
            booking_id,
            "update extras of",
            lambda record, now: state_machine.attach_extras(record, extras, self.menu, now),
        )

    def confirm(self, booking_id: UUID, customer: CustomerInfo) -> BookingRecord:
        return self._transition(
            booking_id,
            "confirm",
            lambda record, now: state_machine.confirm(record, customer, now),
        )

    def mark_paid(self, booking_id: UUID, payment_reference: Mapping[str, Any]) -> BookingRecord:
        return self._transition(
            booking_id,
            "mark as paid",
            lambda record, now: state_machine.mark_paid(record, payment_reference, now),
        )

    def cancel(self, booking_id: UUID) -> BookingRecord:
        return self._transition(booking_id, "cancel", state_machine.cancel)

    def _transition(
        self,
        booking_id: UUID,
        action: str,
        apply: Callable[[BookingRecord, datetime], BookingRecord],
    ) -> BookingRecord:
        record = self.get_booking(booking_id)
        now = self.clock()
        try:
            updated = apply(record, now)
        except ExpiredError as exc:
            if exc.expired_record is not None:
                self._persist_expiry(record, exc.expired_record)
            raise

        try:
            updated = self.store.compare_and_set(updated, expected_status=record.status)
        except StaleStateError:
            raise self._lost_race(booking_id, action)

        logger.info(
            "Booking %s: %s -> %s", record.booking_code, record.status.value, updated.status.value
        )
        return updated

    def _persist_expiry(self, record: BookingRecord, expired: BookingRecord) -> None:
        try:
            self.store.compare_and_set(expired, expected_status=record.status)
            logger.info("Booking %s expired on access", record.booking_code)
        except StaleStateError:
            logger.info("Booking %s was already transitioned before expiry", record.booking_code)

    def _lost_race(self, booking_id: UUID, action: str) -> Exception:
        current = self.store.get(booking_id)
        if current is None:
            return NotFoundError("Booking", booking_id)
        now = self.clock()
        logger.warning(
            "Concurrent update on booking %s: cannot %s, now '%s'",
            current.booking_code, action, current.status.value,
        )
        if is_hold_lapsed(current.status, current.hold_expires_at, now):
            # Seats were taken over after the hold lapsed
            self._persist_expiry(current, state_machine.expire(current, now))
            return ExpiredError(current.id, current.hold_expires_at)
        if current.status == BookingStatus.expired:
            return ExpiredError(current.id, current.hold_expires_at)
        return InvalidStateError(current.id, current.status.value, action)
