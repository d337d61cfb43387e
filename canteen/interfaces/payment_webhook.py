import logging

from fastapi import APIRouter, Depends, Header, Request

from canteen.application.order_service import OrderService
from canteen.domain.enums import PaymentMethod, PaymentStatus
from canteen.domain.errors import InvalidPaymentStatus, Unauthorized
from canteen.interfaces.dependencies import get_order_service, token_matches, ok
from canteen.interfaces.schemas import PaymentWebhookIn

router = APIRouter(prefix="/payments", tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    payload: PaymentWebhookIn,
    x_payment_secret: str | None = Header(default=None),
    service: OrderService = Depends(get_order_service),
):
    """
    Payment provider callback for online orders.
    Only a `paid` notification changes anything; the provider shares a secret with us.
    """
    if not token_matches(x_payment_secret, request.app.state.settings.PAYMENT_WEBHOOK_SECRET):
        logger.warning(f"Rejected payment callback for {payload.order_id}: bad secret")
        raise Unauthorized("Invalid payment callback secret")

    logger.info(f"📨 Payment callback: order={payload.order_id} status={payload.payment_status.value}")
    if payload.payment_status != PaymentStatus.PAID:
        raise InvalidPaymentStatus()

    order = await service.confirm_payment(payload.order_id, PaymentMethod.ONLINE)
    return ok(order.to_api())
