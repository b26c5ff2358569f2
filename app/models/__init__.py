from app.models.booking import Booking, BookingSeat, SeatClaim
