"""Order status state machine.

``apply_transition`` is pure: it never mutates the order it is given and
returns the next order value, or raises without side effects.
"""

from datetime import datetime

from canteen.application import otp as otp_verifier
from canteen.application.clock import advance, utcnow
from canteen.application.payment_gate import is_payable
from canteen.domain.enums import OrderStatus, is_legal_edge
from canteen.domain.errors import (
    CanteenError,
    InvalidOtpFormat,
    InvalidTransition,
    NotPayable,
    OtpMismatch,
)
from canteen.domain.models import Order


def _as_status(target) -> OrderStatus:
    try:
        return OrderStatus(target)
    except ValueError:
        raise InvalidTransition(f"Unknown order status: {target!r}") from None


def _check(order: Order, target: OrderStatus, otp: str | None) -> None:
    if not is_legal_edge(order.status, target):
        raise InvalidTransition(
            f"Cannot change status from {order.status.value} to {target.value}"
        )
    if target == OrderStatus.PREPARING and not is_payable(order):
        raise NotPayable(f"Order {order.order_number} is awaiting payment confirmation")
    if target == OrderStatus.PICKED_UP:
        if not otp_verifier.is_well_formed(otp):
            raise InvalidOtpFormat()
        if not otp_verifier.verify(order, otp):
            raise OtpMismatch(f"Invalid OTP for order {order.order_number}")


def can_transition(order: Order, target: OrderStatus, otp: str | None = None) -> bool:
    try:
        _check(order, _as_status(target), otp)
    except CanteenError:
        return False
    return True


def apply_transition(
    order: Order,
    target: OrderStatus,
    otp: str | None = None,
    now: datetime | None = None,
) -> Order:
    target = _as_status(target)
    _check(order, target, otp)

    update = {
        "status": target,
        "updated_at": advance(order.updated_at, now or utcnow()),
    }
    if target == OrderStatus.READY:
        update["otp"] = otp_verifier.issue_otp()
    elif order.status == OrderStatus.READY:
        # single use: leaving ready burns the code
        update["otp"] = None
    return order.model_copy(update=update)
