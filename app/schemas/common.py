from typing import Any, Dict, List, Optional
from pydantic import BaseModel


# Error responses: body produced by BookingError.to_dict()
class ErrorResponse(BaseModel):
    error: str
    message: str


class ValidationErrorResponse(ErrorResponse):
    fields: Optional[List[str]] = None
    seat_errors: Optional[List[Dict[str, Any]]] = None


class SeatsUnavailableError(ErrorResponse):
    unavailable_seats: List[str]


class InvalidStateErrorResponse(ErrorResponse):
    booking_id: Optional[str] = None
    status: str
    action: str


class ExpiredErrorResponse(ErrorResponse):
    booking_id: Optional[str] = None
    hold_expires_at: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str
