from fastapi import APIRouter, Depends

from canteen.application.order_service import OrderService
from canteen.domain.enums import PaymentMethod, PaymentStatus
from canteen.domain.errors import InvalidPaymentStatus
from canteen.interfaces.dependencies import get_order_service, ok, require_staff
from canteen.interfaces.schemas import ManualOrderIn, PaymentUpdateIn

router = APIRouter(prefix="/staff", tags=["staff"], dependencies=[Depends(require_staff)])


@router.get("/pending-payments")
async def pending_payments(service: OrderService = Depends(get_order_service)):
    """Offline orders waiting for staff to take the cash."""
    orders = service.list_pending_payments()
    return ok([o.to_api() for o in orders], count=len(orders))


@router.put("/orders/{order_id}/payment")
async def confirm_cash_payment(
    order_id: str,
    payload: PaymentUpdateIn,
    service: OrderService = Depends(get_order_service),
):
    if payload.payment_status != PaymentStatus.PAID:
        raise InvalidPaymentStatus()
    order = await service.confirm_payment(order_id, PaymentMethod.OFFLINE)
    return ok(order.to_api())


@router.post("/manual-order", status_code=201)
async def create_manual_order(payload: ManualOrderIn, service: OrderService = Depends(get_order_service)):
    order = await service.create_manual_order(
        customer_name=payload.customer_name,
        customer_contact=payload.customer_contact,
        items=payload.items,
    )
    return ok(order.to_api())
