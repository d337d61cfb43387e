from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus


class CamelModel(BaseModel):
    """Immutable value object exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class OrderItem(CamelModel):
    item_ref: str | None = None
    name: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)


class Order(CamelModel):
    id: str
    order_number: str
    customer_name: str = Field(min_length=1)
    customer_contact: str = Field(min_length=1)
    items: List[OrderItem] = Field(min_length=1)
    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    is_manual_order: bool = False
    otp: str | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def total(self) -> Decimal:
        # Never stored independently of the line items
        return sum((item.unit_price * item.quantity for item in self.items), Decimal("0"))

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Lap(CamelModel):
    """A kitchen batch: the unlapped orders frozen at the moment staff called it."""

    lap_number: int = Field(ge=1)
    member_order_ids: frozenset[str]
    declared_at: datetime


class ItemTally(CamelModel):
    name: str
    quantity: int


class LapSummary(CamelModel):
    lap: Lap
    items: List[ItemTally]

    @property
    def is_complete(self) -> bool:
        """Every member has left the active set."""
        return not self.items
