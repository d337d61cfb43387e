import logging
from typing import Any, List

import httpx

from canteen.domain.enums import OrderStatus, PaymentStatus
from canteen.domain.errors import ERRORS_BY_CODE, CanteenError, StoreUnavailable
from canteen.domain.models import Order, OrderItem
from canteen.interfaces.IOrderGateway import IOrderGateway

logger = logging.getLogger(__name__)


class HttpOrderGateway(IOrderGateway):
    """Talks to the order API on behalf of a staff terminal."""

    def __init__(self, base_url: str, staff_token: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.client.headers["Authorization"] = f"Bearer {staff_token}"

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"Order store unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_success and body.get("success"):
            return body.get("data")

        error = body.get("error") or {}
        message = error.get("message") or f"Order store answered HTTP {response.status_code}"
        error_cls = ERRORS_BY_CODE.get(error.get("code"))
        if error_cls is not None:
            raise error_cls(message)
        if response.status_code >= 500:
            raise StoreUnavailable(message)
        raise CanteenError(message)

    async def list_orders(self) -> List[Order]:
        data = await self._request("GET", "orders", params={"role": "staff"})
        return [Order.model_validate(item) for item in data]

    async def update_status(self, order_id: str, status: OrderStatus, otp: str | None = None) -> Order:
        payload = {"status": status.value}
        if otp is not None:
            payload["otp"] = otp
        data = await self._request("PUT", f"orders/{order_id}/status", json=payload)
        return Order.model_validate(data)

    async def confirm_payment(self, order_id: str) -> Order:
        data = await self._request(
            "PUT", f"staff/orders/{order_id}/payment", json={"paymentStatus": PaymentStatus.PAID.value}
        )
        return Order.model_validate(data)

    async def create_manual_order(self, customer_name: str, customer_contact: str, items: List[OrderItem]) -> Order:
        payload = {
            "customerName": customer_name,
            "customerContact": customer_contact,
            "items": [item.model_dump(by_alias=True, mode="json") for item in items],
        }
        data = await self._request("POST", "staff/manual-order", json=payload)
        return Order.model_validate(data)

    async def aclose(self):
        await self.client.aclose()
