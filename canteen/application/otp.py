"""Pickup handoff codes."""

import re
import secrets

from canteen.domain.models import Order

OTP_PATTERN = re.compile(r"[0-9]{4}")


def issue_otp() -> str:
    """Uniform over 0000-9999. Codes may repeat across orders."""
    return f"{secrets.randbelow(10_000):04d}"


def is_well_formed(code) -> bool:
    return isinstance(code, str) and OTP_PATTERN.fullmatch(code) is not None


def verify(order: Order, supplied_code) -> bool:
    if not is_well_formed(supplied_code) or order.otp is None:
        return False
    return secrets.compare_digest(order.otp, supplied_code)
