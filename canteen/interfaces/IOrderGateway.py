from abc import ABC, abstractmethod
from typing import List

from canteen.domain.enums import OrderStatus
from canteen.domain.models import Order, OrderItem

class IOrderGateway(ABC):
    """What a staff terminal can ask of the order store.

    Implementations raise ``StoreUnavailable`` when the store cannot be
    reached and the matching ``CanteenError`` when it rejects a request.
    """

    @abstractmethod
    async def list_orders(self) -> List[Order]:
        pass

    @abstractmethod
    async def update_status(self, order_id: str, status: OrderStatus, otp: str | None = None) -> Order:
        pass

    @abstractmethod
    async def confirm_payment(self, order_id: str) -> Order:
        pass

    @abstractmethod
    async def create_manual_order(self, customer_name: str, customer_contact: str, items: List[OrderItem]) -> Order:
        pass
