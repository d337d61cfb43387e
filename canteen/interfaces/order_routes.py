import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query

from canteen.application.order_service import OrderService
from canteen.domain.enums import OrderStatus
from canteen.interfaces.dependencies import get_order_service, ok, require_staff
from canteen.interfaces.schemas import PlaceOrderIn, StatusUpdateIn

router = APIRouter(prefix="/orders", tags=["orders"])
logger = logging.getLogger(__name__)


@router.get("", dependencies=[Depends(require_staff)])
async def list_orders(
    role: Literal["staff"] = Query("staff"),
    status: OrderStatus | None = Query(None),
    service: OrderService = Depends(get_order_service),
):
    """
    Staff order list, newest first.
    Terminals filter client-side: kitchen shows `preparing`, pickup shows `ready`.
    """
    orders = service.list_orders(status=status)
    return ok([o.to_api() for o in orders], count=len(orders))


@router.post("", status_code=201)
async def place_order(payload: PlaceOrderIn, service: OrderService = Depends(get_order_service)):
    order = await service.place_order(
        customer_name=payload.customer_name,
        customer_contact=payload.customer_contact,
        items=payload.items,
        payment_method=payload.payment_method,
    )
    return ok(order.to_api())


@router.get("/{order_id}", dependencies=[Depends(require_staff)])
async def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return ok(service.get_order(order_id).to_api())


@router.put("/{order_id}/status", dependencies=[Depends(require_staff)])
async def update_status(order_id: str, payload: StatusUpdateIn, service: OrderService = Depends(get_order_service)):
    # Rejections raise CanteenError and are rendered by the handler in main.py
    order = await service.update_status(order_id, payload.status, otp=payload.otp)
    return ok(order.to_api())
