
from app.db.session import Base
from app.models.booking import Booking, BookingSeat, SeatClaim
