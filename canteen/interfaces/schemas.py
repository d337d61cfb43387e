"""Request bodies accepted by the HTTP routes (camelCase on the wire)."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.models import OrderItem


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class ManualOrderIn(RequestModel):
    customer_name: str = Field(min_length=1, max_length=120)
    customer_contact: str = Field(min_length=1, max_length=50)
    items: List[OrderItem] = Field(min_length=1)


class PlaceOrderIn(ManualOrderIn):
    payment_method: PaymentMethod


class StatusUpdateIn(RequestModel):
    status: OrderStatus
    otp: str | None = None


class PaymentUpdateIn(RequestModel):
    payment_status: PaymentStatus = PaymentStatus.PAID


class PaymentWebhookIn(RequestModel):
    order_id: str
    payment_status: PaymentStatus
