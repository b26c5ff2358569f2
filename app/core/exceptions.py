"""
Booking error taxonomy.

Every error carries a machine-readable ``kind`` and structured details so API
clients never have to parse messages. ``status_code`` is the HTTP status the
API layer answers with.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional


class BookingError(Exception):
    kind = "booking_error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.kind, "message": self.message}
        for key, value in self.details.items():
            body[key] = value.isoformat() if isinstance(value, datetime) else value
        return body


class ValidationError(BookingError):
    """Malformed input: missing fields, bad phone, bad prices, empty seat set."""

    kind = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str,
        fields: Optional[List[str]] = None,
        seat_errors: Optional[List[Dict[str, Any]]] = None,
    ):
        details: Dict[str, Any] = {}
        if fields:
            details["fields"] = fields
        if seat_errors:
            details["seat_errors"] = seat_errors
        super().__init__(message, **details)
        self.fields = fields or []
        self.seat_errors = seat_errors or []


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found", resource=resource, identifier=str(identifier))
        self.resource = resource
        self.identifier = identifier


class ConflictError(BookingError):
    """One or more requested seats are held by a live booking."""

    kind = "conflict"
    status_code = 409

    def __init__(self, unavailable_seats: List[str]):
        super().__init__(
            f"Seats {', '.join(unavailable_seats)} are already booked",
            unavailable_seats=list(unavailable_seats),
        )
        self.unavailable_seats = list(unavailable_seats)


class InvalidStateError(BookingError):
    kind = "invalid_state"
    status_code = 409

    def __init__(self, booking_id: Any, status: str, action: str):
        super().__init__(
            f"Cannot {action} a booking in status '{status}'",
            booking_id=str(booking_id) if booking_id is not None else None,
            status=status,
            action=action,
        )
        self.booking_id = booking_id
        self.status = status
        self.action = action


class ExpiredError(BookingError):
    """
    The seat hold lapsed. ``expired_record`` is the record after the expire
    transition, for the caller to persist.
    """

    kind = "expired"
    status_code = 410

    def __init__(self, booking_id: Any, hold_expires_at: Optional[datetime], expired_record=None):
        super().__init__(
            "Seat hold has expired, please start a new booking",
            booking_id=str(booking_id) if booking_id is not None else None,
            hold_expires_at=hold_expires_at,
        )
        self.booking_id = booking_id
        self.hold_expires_at = hold_expires_at
        self.expired_record = expired_record


class StoreUnavailableError(BookingError):
    """Timeout or connectivity failure talking to the reservation store."""

    kind = "store_unavailable"
    status_code = 503

    def __init__(self, operation: str):
        super().__init__(f"Reservation store unavailable during {operation}", operation=operation)
        self.operation = operation


class CatalogUnavailableError(BookingError):
    kind = "catalog_unavailable"
    status_code = 503

    def __init__(self, movie_id: str):
        super().__init__("Movie catalog service unavailable", movie_id=movie_id)
        self.movie_id = movie_id


class StaleStateError(Exception):
    """A conditional write found the record no longer in the status that was read."""

    def __init__(self, booking_id: Any, expected_status: str):
        super().__init__(f"Booking {booking_id} is no longer '{expected_status}'")
        self.booking_id = booking_id
        self.expected_status = expected_status


class DuplicateBookingCodeError(Exception):
    """Another booking took this code between generation and insert."""

    def __init__(self, booking_code: str):
        super().__init__(f"Booking code {booking_code} is already in use")
        self.booking_code = booking_code
