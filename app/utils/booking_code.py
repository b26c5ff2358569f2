import random
import string
from typing import Callable

from app.core.constants import BOOKING_CODE_PREFIX, BOOKING_CODE_LENGTH


def generate_booking_code() -> str:
    """Generate a 'BK-XXXXXXXX' booking reference."""
    chars = string.ascii_uppercase + string.digits
    return BOOKING_CODE_PREFIX + "".join(random.choices(chars, k=BOOKING_CODE_LENGTH))


def make_unique_booking_code(code_exists: Callable[[str], bool]) -> str:
    """Generate a booking code, drawing again on collision."""
    while True:
        code = generate_booking_code()
        if not code_exists(code):
            return code
