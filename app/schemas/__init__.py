from app.schemas.common import (
    ErrorResponse, ValidationErrorResponse, SeatsUnavailableError,
    InvalidStateErrorResponse, ExpiredErrorResponse, HealthResponse,
)
from app.schemas.booking import (
    Booking, BookingCreate, BookingCreateResponse, BookingConfirm, BookingConfirmResponse,
    BookingCancelResponse, BookingStatusResponse, BookedSeatsResponse, BookingSeatResponse,
    BookingTotals, ComboItem, CustomerFields, ExtraItemRequest, ExtraLineResponse,
    ExtrasUpdate, ExtrasResponse, PaymentCompleted, PaymentResponse, SeatRequest,
)
