import re
from typing import Optional

# Mobile numbers: optional country code (84 / +84) or a leading 0, one of the
# carrier prefixes 3/5/7/8/9, then 8 digits.
PHONE_PATTERN = re.compile(r"^(?:\+?84|0)[35789][0-9]{8}$")


def normalize_phone(phone: str) -> str:
    """Strip spaces, dots and dashes that users type between digit groups."""
    return re.sub(r"[\s.\-]", "", phone)


def is_valid_phone(phone: Optional[str]) -> bool:
    if not phone:
        return False
    return PHONE_PATTERN.match(normalize_phone(phone)) is not None
