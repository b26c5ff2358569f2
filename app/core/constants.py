import enum


class BookingStatus(str, enum.Enum):
    held = "held"
    confirmed_pending_payment = "confirmed_pending_payment"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"


class PaymentStatus(str, enum.Enum):
    unpaid = "unpaid"
    paid = "paid"


class SeatType(str, enum.Enum):
    standard = "standard"
    vip = "vip"
    couple = "couple"


# Statuses whose bookings occupy their seats (subject to hold expiry for `held`)
SEAT_HOLDING_STATUSES = frozenset({
    BookingStatus.held,
    BookingStatus.confirmed_pending_payment,
    BookingStatus.completed,
})

TERMINAL_STATUSES = frozenset({
    BookingStatus.completed,
    BookingStatus.cancelled,
    BookingStatus.expired,
})

# Statuses from which extras may still be changed
EXTRAS_EDITABLE_STATUSES = frozenset({
    BookingStatus.held,
    BookingStatus.confirmed_pending_payment,
})

DEFAULT_PAYMENT_METHOD = "cash"

BOOKING_CODE_PREFIX = "BK-"
BOOKING_CODE_LENGTH = 8
BOOKING_CODE_ATTEMPTS = 3

# Concession menu: combo id -> name, unit price, description
DEFAULT_COMBOS = {
    "popcorn": {"name": "Butter Popcorn", "price": 45000, "description": "1 large butter popcorn"},
    "coke": {"name": "Soft Drink", "price": 35000, "description": "1 large soft drink"},
    "hotdog": {"name": "Hotdog", "price": 30000, "description": "1 hotdog"},
    "water": {"name": "Mineral Water", "price": 15000, "description": "1 bottle of mineral water"},
    "comboset": {"name": "Combo Set", "price": 95000, "description": "1 large popcorn + 2 large soft drinks"},
}
