import uuid
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Integer, BigInteger, Text, JSON, Uuid,
    ForeignKey, Index, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from app.db.session import Base

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_code = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)

    # Showtime key
    movie_id = Column(String(64), nullable=False)
    cinema = Column(String(255), nullable=False)
    showtime_date = Column(Date, nullable=False)
    showtime_time = Column(String(5), nullable=False)
    movie_name = Column(String(255), nullable=True)
    format_label = Column(String(20), nullable=True)

    extras = Column(JSON, nullable=False, default=dict)  # combo_id -> {name, quantity, unit_price, line_total}
    seat_subtotal = Column(BigInteger, nullable=False)
    extras_total = Column(BigInteger, nullable=False, default=0)
    discount = Column(BigInteger, nullable=False, default=0)
    total = Column(BigInteger, nullable=False)

    # Customer (required once the booking leaves "held")
    full_name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    note = Column(Text, nullable=True)

    payment_method = Column(String(30), nullable=False, default="cash")
    payment_status = Column(String(20), nullable=False, default="unpaid")
    payment_reference = Column(JSON, nullable=False, default=dict)

    status = Column(String(30), nullable=False, default="held") # held, confirmed_pending_payment, completed, cancelled, expired
    is_temporary = Column(Boolean, nullable=False, default=True)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    seats = relationship(
        "BookingSeat",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingSeat.position",
    )
    claims = relationship("SeatClaim", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        Index(
            "ix_bookings_showtime_status",
            "movie_id", "cinema", "showtime_date", "showtime_time", "status", "deleted",
        ),
    )

class BookingSeat(Base):
    """Seat snapshot of a booking; kept for the lifetime of the booking."""

    __tablename__ = "booking_seats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    seat_number = Column(String(10), nullable=False)
    seat_type = Column(String(20), nullable=False) # standard, vip, couple
    price = Column(BigInteger, nullable=False)

    booking = relationship("Booking", back_populates="seats")

class SeatClaim(Base):
    """
    One row per seat held by a live booking. The unique constraint is what
    makes two live bookings sharing a seat at one showtime impossible.
    Rows are removed when their booking is cancelled or expired.
    """

    __tablename__ = "seat_claims"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    movie_id = Column(String(64), nullable=False)
    cinema = Column(String(255), nullable=False)
    showtime_date = Column(Date, nullable=False)
    showtime_time = Column(String(5), nullable=False)
    seat_number = Column(String(10), nullable=False)
    hold_expires_at = Column(DateTime(timezone=True), nullable=True) # null once confirmed/paid

    booking = relationship("Booking", back_populates="claims")

    __table_args__ = (
        UniqueConstraint(
            "movie_id", "cinema", "showtime_date", "showtime_time", "seat_number",
            name="uq_seat_claims_showtime_seat",
        ),
    )
