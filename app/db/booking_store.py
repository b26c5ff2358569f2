"""
Reservation store: SQLAlchemy persistence for booking records.

Every write is a single short transaction:

* ``insert`` claims seats through the ``seat_claims`` unique constraint, so a
  second live booking for the same showtime seat is rejected by the database.
* ``compare_and_set`` only updates a booking still in the status the caller
  read (optimistic concurrency); otherwise it raises ``StaleStateError``.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from app.core.constants import BookingStatus, PaymentStatus, SeatType, SEAT_HOLDING_STATUSES
from app.core.exceptions import (
    ConflictError,
    DuplicateBookingCodeError,
    StaleStateError,
    StoreUnavailableError,
)
from app.domain.booking import BookingRecord, ExtraLine, SeatSelection, ShowtimeKey
from app.models.booking import Booking, BookingSeat, SeatClaim

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_unavailable(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def _showtime_filter(model, showtime: ShowtimeKey):
    return and_(
        model.movie_id == showtime.movie_id,
        model.cinema == showtime.cinema,
        model.showtime_date == showtime.showtime_date,
        model.showtime_time == showtime.showtime_time,
    )


def _to_record(booking: Booking) -> BookingRecord:
    return BookingRecord(
        id=booking.id,
        booking_code=booking.booking_code,
        user_id=booking.user_id,
        showtime=ShowtimeKey(
            movie_id=booking.movie_id,
            cinema=booking.cinema,
            showtime_date=booking.showtime_date,
            showtime_time=booking.showtime_time,
        ),
        movie_name=booking.movie_name,
        format_label=booking.format_label,
        seats=tuple(
            SeatSelection(seat_number=s.seat_number, seat_type=SeatType(s.seat_type), price=s.price)
            for s in booking.seats
        ),
        extras={k: ExtraLine(**v) for k, v in (booking.extras or {}).items()},
        seat_subtotal=booking.seat_subtotal,
        extras_total=booking.extras_total,
        discount=booking.discount,
        total=booking.total,
        full_name=booking.full_name,
        phone=booking.phone,
        email=booking.email,
        note=booking.note,
        payment_method=booking.payment_method,
        payment_status=PaymentStatus(booking.payment_status),
        payment_reference=booking.payment_reference or {},
        status=BookingStatus(booking.status),
        is_temporary=booking.is_temporary,
        hold_expires_at=_aware(booking.hold_expires_at),
        completed_at=_aware(booking.completed_at),
        deleted=booking.deleted,
        deleted_at=_aware(booking.deleted_at),
        created_at=_aware(booking.created_at),
        updated_at=_aware(booking.updated_at),
    )


def _mutable_columns(record: BookingRecord) -> dict:
    """Columns a transition may change."""
    return {
        "extras": {k: line.model_dump() for k, line in record.extras.items()},
        "extras_total": record.extras_total,
        "discount": record.discount,
        "total": record.total,
        "full_name": record.full_name,
        "phone": record.phone,
        "email": record.email,
        "note": record.note,
        "payment_method": record.payment_method,
        "payment_status": record.payment_status.value,
        "payment_reference": dict(record.payment_reference),
        "status": record.status.value,
        "is_temporary": record.is_temporary,
        "hold_expires_at": record.hold_expires_at,
        "completed_at": record.completed_at,
        "deleted": record.deleted,
        "deleted_at": record.deleted_at,
        "updated_at": record.updated_at,
    }


class BookingStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception as exc:
            db.rollback()
            if _is_unavailable(exc):
                logger.warning("Store unavailable during %s: %s", operation, exc)
                raise StoreUnavailableError(operation) from exc
            raise
        finally:
            db.close()

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def get(self, booking_id: UUID) -> Optional[BookingRecord]:
        with self._session("get booking") as db:
            booking = (
                db.query(Booking)
                .options(selectinload(Booking.seats))
                .filter(Booking.id == booking_id)
                .first()
            )
            return _to_record(booking) if booking else None

    def code_exists(self, booking_code: str) -> bool:
        with self._session("check booking code") as db:
            return db.query(Booking.id).filter(Booking.booking_code == booking_code).first() is not None

    def seat_rows_for_showtime(
        self, showtime: ShowtimeKey
    ) -> List[Tuple[str, BookingStatus, Optional[datetime]]]:
        """(seat_number, status, hold_expires_at) of every seat of every non-deleted booking at a showtime."""
        with self._session("read showtime seats") as db:
            rows = db.execute(
                select(BookingSeat.seat_number, Booking.status, Booking.hold_expires_at)
                .join(Booking, Booking.id == BookingSeat.booking_id)
                .where(
                    _showtime_filter(Booking, showtime),
                    Booking.deleted == False,  # noqa: E712
                    Booking.status.in_([s.value for s in SEAT_HOLDING_STATUSES]),
                )
                .order_by(Booking.created_at, BookingSeat.position)
            ).all()
            return [(seat, BookingStatus(status), _aware(expires)) for seat, status, expires in rows]

    def claimed_seats(self, showtime: ShowtimeKey, seat_numbers: Iterable[str], now: datetime) -> List[str]:
        """Requested seats with a live claim (permanent, or a hold not yet lapsed at ``now``)."""
        seat_numbers = list(seat_numbers)
        with self._session("read seat claims") as db:
            claimed = set(db.execute(
                select(SeatClaim.seat_number).where(
                    _showtime_filter(SeatClaim, showtime),
                    SeatClaim.seat_number.in_(seat_numbers),
                    or_(SeatClaim.hold_expires_at.is_(None), SeatClaim.hold_expires_at >= now),
                )
            ).scalars())
        return [s for s in seat_numbers if s in claimed]

    def lapsed_hold_ids(self, now: datetime) -> List[UUID]:
        with self._session("find lapsed holds") as db:
            return list(db.execute(
                select(Booking.id).where(
                    Booking.status == BookingStatus.held.value,
                    Booking.deleted == False,  # noqa: E712
                    Booking.hold_expires_at < now,
                )
            ).scalars())

    def expired_ids_before(self, cutoff: datetime) -> List[UUID]:
        with self._session("find purgeable bookings") as db:
            return list(db.execute(
                select(Booking.id).where(
                    Booking.status == BookingStatus.expired.value,
                    Booking.deleted_at < cutoff,
                )
            ).scalars())

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    def insert(self, record: BookingRecord, now: datetime) -> BookingRecord:
        """
        Persist a new booking and claim its seats atomically.

        Claims left behind by lapsed holds on the requested seats are released
        first. A claim that is still live makes the insert fail with
        ``ConflictError`` naming the contested seats.
        """
        showtime = record.showtime
        try:
            with self._session("create booking") as db:
                db.execute(
                    delete(SeatClaim).where(
                        _showtime_filter(SeatClaim, showtime),
                        SeatClaim.seat_number.in_(record.seat_numbers),
                        SeatClaim.hold_expires_at.is_not(None),
                        SeatClaim.hold_expires_at < now,
                    )
                )

                booking = Booking(
                    booking_code=record.booking_code,
                    user_id=record.user_id,
                    movie_id=showtime.movie_id,
                    cinema=showtime.cinema,
                    showtime_date=showtime.showtime_date,
                    showtime_time=showtime.showtime_time,
                    movie_name=record.movie_name,
                    format_label=record.format_label,
                    seat_subtotal=record.seat_subtotal,
                    created_at=record.created_at,
                    **_mutable_columns(record),
                )
                booking.seats = [
                    BookingSeat(
                        position=i,
                        seat_number=seat.seat_number,
                        seat_type=seat.seat_type.value,
                        price=seat.price,
                    )
                    for i, seat in enumerate(record.seats)
                ]
                booking.claims = [
                    SeatClaim(
                        movie_id=showtime.movie_id,
                        cinema=showtime.cinema,
                        showtime_date=showtime.showtime_date,
                        showtime_time=showtime.showtime_time,
                        seat_number=seat.seat_number,
                        hold_expires_at=record.hold_expires_at,
                    )
                    for seat in record.seats
                ]
                db.add(booking)
                db.commit()
                booking_id = booking.id
        except IntegrityError:
            conflicts = self.claimed_seats(showtime, record.seat_numbers, now)
            if conflicts:
                logger.warning(
                    "Seat claim rejected for %s at %s: %s",
                    record.booking_code, showtime, conflicts,
                )
                raise ConflictError(conflicts)
            if self.code_exists(record.booking_code):
                raise DuplicateBookingCodeError(record.booking_code)
            logger.exception("Unexpected integrity error creating %s", record.booking_code)
            raise StoreUnavailableError("create booking")

        return record.model_copy(update={"id": booking_id})

    def compare_and_set(self, record: BookingRecord, expected_status: BookingStatus) -> BookingRecord:
        """
        Write ``record`` only if the stored booking is still live and in
        ``expected_status``. Seat claims follow the booking: released when it
        becomes deleted, made permanent when its hold is cleared. Clearing a
        hold whose claims were taken over after it lapsed raises
        ``StaleStateError`` as well.
        """
        with self._session(f"update booking to {record.status.value}") as db:
            result = db.execute(
                update(Booking)
                .where(
                    Booking.id == record.id,
                    Booking.status == expected_status.value,
                    Booking.deleted == False,  # noqa: E712
                )
                .values(**_mutable_columns(record))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise StaleStateError(record.id, expected_status.value)

            if record.deleted:
                db.execute(delete(SeatClaim).where(SeatClaim.booking_id == record.id))
            elif record.hold_expires_at is None:
                kept = db.execute(
                    update(SeatClaim)
                    .where(SeatClaim.booking_id == record.id)
                    .values(hold_expires_at=None)
                    .execution_options(synchronize_session=False)
                )
                # A lapsed hold's claims may already belong to a newer booking
                if kept.rowcount != len(record.seats):
                    db.rollback()
                    raise StaleStateError(record.id, expected_status.value)
            db.commit()
        return record

    def purge(self, booking_id: UUID) -> bool:
        """Hard-delete an expired booking. Returns False if it is not (or no longer) expired."""
        with self._session("purge booking") as db:
            result = db.execute(
                delete(Booking).where(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.expired.value,
                )
            )
            if result.rowcount != 1:
                db.rollback()
                return False
            db.execute(delete(BookingSeat).where(BookingSeat.booking_id == booking_id))
            db.execute(delete(SeatClaim).where(SeatClaim.booking_id == booking_id))
            db.commit()
            return True
