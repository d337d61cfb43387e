"""Rules deciding when an order may enter the preparation pipeline."""

from datetime import datetime

from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import PaymentAlreadyConfirmed, PaymentMethodMismatch
from canteen.domain.models import Order
from canteen.application.clock import advance, utcnow


def is_payable(order: Order) -> bool:
    # online: set by the provider callback; offline: set when staff take the cash
    return order.payment_status == PaymentStatus.PAID


def is_visible_in_preparation(order: Order) -> bool:
    return order.status == OrderStatus.PREPARING and is_payable(order)


def confirm_payment(order: Order, method: PaymentMethod, now: datetime | None = None) -> Order:
    """Mark ``order`` paid through ``method``.

    Staff confirm cash for ``offline`` orders only; the payment provider
    confirms ``online`` orders only.
    """
    if order.payment_method != method:
        raise PaymentMethodMismatch(
            f"Payment confirmation via {method.value} is not available for "
            f"{order.payment_method.value} orders"
        )
    if order.payment_status == PaymentStatus.PAID:
        raise PaymentAlreadyConfirmed(f"Payment already confirmed for order {order.order_number}")
    return order.model_copy(update={
        "payment_status": PaymentStatus.PAID,
        "updated_at": advance(order.updated_at, now or utcnow()),
    })
