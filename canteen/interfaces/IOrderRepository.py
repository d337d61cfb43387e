from abc import ABC, abstractmethod
from typing import List

from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.models import Order, OrderItem

class IOrderRepository(ABC):
    @abstractmethod
    def create_order(
        self,
        customer_name: str,
        customer_contact: str,
        items: List[OrderItem],
        payment_method: PaymentMethod,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        is_manual_order: bool = False,
    ) -> Order:
        """Persist a new ``pending`` order, assigning its id and order number."""

    @abstractmethod
    def get_order(self, order_id: str) -> Order | None:
        pass

    @abstractmethod
    def list_orders(self, status: OrderStatus | None = None, finished_limit: int = 200) -> List[Order]:
        """Newest first. Open orders are always all included; only completed and
        cancelled ones are capped at ``finished_limit``."""

    @abstractmethod
    def list_pending_payments(self) -> List[Order]:
        pass

    @abstractmethod
    def compare_and_set(self, expected: Order, updated: Order) -> bool:
        """Write ``updated`` only if the stored status and payment status still
        equal ``expected``'s. Returns ``False`` when another writer got there first."""
