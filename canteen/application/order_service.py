import logging
from typing import List

from canteen.application.payment_gate import confirm_payment
from canteen.application.transitions import apply_transition
from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import InvalidTransition, OrderNotFound
from canteen.domain.events import STAFF_ROOM, DomainEvent, EventType, events_for_transition, order_room
from canteen.domain.models import Order, OrderItem
from canteen.interfaces.IOrderRepository import IOrderRepository

logger = logging.getLogger(__name__)

# Times a mutation is re-validated after losing a compare-and-set race
WRITE_ATTEMPTS = 3


class OrderService:
    """Runs every order mutation: validate, write, then tell the staff room."""

    def __init__(self, order_repo: IOrderRepository, broadcaster, notifier=None, auto_prepare_on_payment: bool = True):
        self.order_repo = order_repo
        self.broadcaster = broadcaster
        self.notifier = notifier  # Injected NotificationService
        self.auto_prepare_on_payment = auto_prepare_on_payment

    # --- READS ---

    def list_orders(self, status: OrderStatus | None = None) -> List[Order]:
        return self.order_repo.list_orders(status=status)

    def list_pending_payments(self) -> List[Order]:
        return self.order_repo.list_pending_payments()

    def get_order(self, order_id: str) -> Order:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    # --- CREATION ---

    async def place_order(
        self,
        customer_name: str,
        customer_contact: str,
        items: List[OrderItem],
        payment_method: PaymentMethod,
    ) -> Order:
        order = self.order_repo.create_order(
            customer_name=customer_name,
            customer_contact=customer_contact,
            items=items,
            payment_method=payment_method,
        )
        logger.info(f"[ORDERS] New {payment_method.value} order {order.order_number} ({order.total})")
        await self._publish(DomainEvent.for_order(EventType.NEW_ORDER, order))
        return order

    async def create_manual_order(self, customer_name: str, customer_contact: str, items: List[OrderItem]) -> Order:
        """Walk-in order taken at the counter: cash is in hand, so it is paid from the start."""
        order = self.order_repo.create_order(
            customer_name=customer_name,
            customer_contact=customer_contact,
            items=items,
            payment_method=PaymentMethod.OFFLINE,
            payment_status=PaymentStatus.PAID,
            is_manual_order=True,
        )
        logger.info(f"[ORDERS] Manual order {order.order_number} ({order.total})")
        await self._publish(DomainEvent.for_order(EventType.NEW_ORDER, order))
        return await self.update_status(order.id, OrderStatus.PREPARING)

    # --- MUTATIONS ---

    async def update_status(self, order_id: str, target: OrderStatus, otp: str | None = None) -> Order:
        for _ in range(WRITE_ATTEMPTS):
            current = self.get_order(order_id)
            # Raises on an illegal edge, unpaid order or bad OTP; nothing written
            updated = apply_transition(current, target, otp=otp)
            if self.order_repo.compare_and_set(current, updated):
                break
            logger.info(f"[ORDERS] {current.order_number} changed underneath us, re-validating")
        else:
            raise InvalidTransition(f"Order {order_id} is being changed by another terminal")

        logger.info(f"[ORDERS] {updated.order_number}: {current.status.value} -> {updated.status.value}")
        for event in events_for_transition(updated):
            await self._publish(event)
        await self._publish_to_customer(updated)

        if updated.status == OrderStatus.READY and self.notifier is not None:
            self.notifier.notify_customer_ready(updated)
        return updated

    async def confirm_payment(self, order_id: str, method: PaymentMethod) -> Order:
        for _ in range(WRITE_ATTEMPTS):
            current = self.get_order(order_id)
            updated = confirm_payment(current, method)
            if self.order_repo.compare_and_set(current, updated):
                break
        else:
            raise InvalidTransition(f"Order {order_id} is being changed by another terminal")

        logger.info(f"[PAYMENTS] {method.value} payment confirmed for {updated.order_number}")
        await self._publish(DomainEvent.for_order(EventType.PAYMENT_CONFIRMED, updated))
        await self._publish_to_customer(updated)

        if self.auto_prepare_on_payment and updated.status == OrderStatus.PENDING:
            return await self.update_status(order_id, OrderStatus.PREPARING)
        return updated

    async def _publish(self, event: DomainEvent):
        await self.broadcaster.publish(STAFF_ROOM, event)

    async def _publish_to_customer(self, order: Order):
        # Customers tracking the order only ever see status updates
        event = DomainEvent.for_order(EventType.ORDER_STATUS_UPDATED, order)
        await self.broadcaster.publish(order_room(order.id), event)
