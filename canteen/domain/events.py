"""Domain events relayed to the ``staff`` room.

Events are hints: a terminal reacts to any of them by re-fetching the
authoritative order list, so the payload only identifies what changed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List

from pydantic import BaseModel

from canteen.domain.enums import OrderStatus, PaymentStatus
from canteen.domain.models import CamelModel, Order

STAFF_ROOM = "staff"


def order_room(order_id: str) -> str:
    """Room a customer joins to follow one order."""
    return f"order-{order_id}"


class EventType(str, Enum):
    NEW_ORDER = "new-order"
    ORDER_STATUS_UPDATED = "order-status-updated"
    ORDER_MOVED_TO_PICKUP = "order-moved-to-pickup"
    ORDER_COMPLETED = "order-completed"
    PAYMENT_CONFIRMED = "payment-confirmed"


class OrderEventData(CamelModel):
    order_id: str
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    updated_at: datetime
    customer_name: str | None = None
    total: Decimal | None = None
    is_manual_order: bool | None = None


class DomainEvent(BaseModel):
    type: EventType
    data: OrderEventData

    @classmethod
    def for_order(cls, event_type: EventType, order: Order) -> "DomainEvent":
        extra = {}
        if event_type == EventType.NEW_ORDER:
            extra = {
                "customer_name": order.customer_name,
                "total": order.total,
                "is_manual_order": order.is_manual_order,
            }
        data = OrderEventData(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            payment_status=order.payment_status,
            updated_at=order.updated_at,
            **extra,
        )
        return cls(type=event_type, data=data)

    def to_frame(self) -> dict:
        return {
            "event": self.type.value,
            "data": self.data.model_dump(by_alias=True, mode="json", exclude_none=True),
        }

    @classmethod
    def from_frame(cls, frame: dict) -> "DomainEvent":
        return cls(type=EventType(frame["event"]), data=OrderEventData.model_validate(frame["data"]))


def events_for_transition(order: Order) -> List[DomainEvent]:
    """Events to publish after ``order`` was moved into its current status."""
    events = [DomainEvent.for_order(EventType.ORDER_STATUS_UPDATED, order)]
    if order.status == OrderStatus.READY:
        events.append(DomainEvent.for_order(EventType.ORDER_MOVED_TO_PICKUP, order))
    elif order.status in (OrderStatus.PICKED_UP, OrderStatus.COMPLETED):
        events.append(DomainEvent.for_order(EventType.ORDER_COMPLETED, order))
    return events
