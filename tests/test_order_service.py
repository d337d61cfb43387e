from decimal import Decimal
from unittest import mock

import pytest

from canteen.application.order_service import OrderService
from canteen.application.transitions import apply_transition
from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import (
    InvalidTransition,
    NotPayable,
    OrderNotFound,
    OtpMismatch,
    PaymentAlreadyConfirmed,
)
from canteen.domain.events import STAFF_ROOM, order_room
from canteen.domain.models import OrderItem

ITEMS = [
    OrderItem(item_ref="m-1", name="Burger", unit_price=Decimal("150"), quantity=2),
    OrderItem(item_ref="m-2", name="Fries", unit_price=Decimal("80"), quantity=1),
]


@pytest.fixture
def notifier():
    return mock.Mock()


@pytest.fixture
def service(repository, broadcaster, notifier):
    return OrderService(repository, broadcaster, notifier=notifier, auto_prepare_on_payment=False)


async def place(service, method=PaymentMethod.OFFLINE):
    return await service.place_order("Asha", "+919800000000", ITEMS, method)


async def test_place_order_persists_and_announces(service, broadcaster, repository):
    order = await place(service)

    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.total == Decimal("380")
    assert repository.get_order(order.id) == order
    assert broadcaster.published[0][0] == STAFF_ROOM
    assert broadcaster.event_types == ["new-order"]


async def test_offline_scenario(service, broadcaster):
    order = await place(service)

    with pytest.raises(NotPayable):
        await service.update_status(order.id, OrderStatus.PREPARING)
    assert service.get_order(order.id).status == OrderStatus.PENDING

    paid = await service.confirm_payment(order.id, PaymentMethod.OFFLINE)
    assert paid.status == OrderStatus.PENDING
    moved = await service.update_status(order.id, OrderStatus.PREPARING)
    assert moved.status == OrderStatus.PREPARING
    assert broadcaster.event_types == ["new-order", "payment-confirmed", "order-status-updated"]


async def test_auto_prepare_on_payment(repository, broadcaster):
    service = OrderService(repository, broadcaster, auto_prepare_on_payment=True)
    order = await place(service, PaymentMethod.ONLINE)

    moved = await service.confirm_payment(order.id, PaymentMethod.ONLINE)
    assert moved.status == OrderStatus.PREPARING
    assert moved.payment_status == PaymentStatus.PAID
    with pytest.raises(PaymentAlreadyConfirmed):
        await service.confirm_payment(order.id, PaymentMethod.ONLINE)


async def test_manual_order_goes_straight_to_kitchen(service, broadcaster):
    order = await service.create_manual_order("Ravi", "+919811111111", ITEMS)

    assert order.is_manual_order
    assert order.payment_method == PaymentMethod.OFFLINE
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.PREPARING
    assert broadcaster.event_types == ["new-order", "order-status-updated"]


async def test_ready_pickup_flow(service, broadcaster, notifier):
    order = await service.create_manual_order("Ravi", "+919811111111", ITEMS)

    ready = await service.update_status(order.id, OrderStatus.READY)
    assert ready.otp is not None and len(ready.otp) == 4
    notifier.notify_customer_ready.assert_called_once_with(ready)
    assert broadcaster.event_types[-2:] == ["order-status-updated", "order-moved-to-pickup"]

    wrong = "1111" if ready.otp == "0000" else "0000"
    with pytest.raises(OtpMismatch):
        await service.update_status(order.id, OrderStatus.PICKED_UP, otp=wrong)
    assert service.get_order(order.id).status == OrderStatus.READY
    assert service.get_order(order.id).otp == ready.otp

    picked = await service.update_status(order.id, OrderStatus.PICKED_UP, otp=ready.otp)
    assert picked.status == OrderStatus.PICKED_UP
    assert picked.otp is None
    assert broadcaster.event_types[-2:] == ["order-status-updated", "order-completed"]

    # Second terminal racing the same handoff
    with pytest.raises(InvalidTransition):
        await service.update_status(order.id, OrderStatus.PICKED_UP, otp=ready.otp)
    assert service.get_order(order.id).status == OrderStatus.PICKED_UP


async def test_repeated_ready_does_not_regenerate_otp(service):
    order = await service.create_manual_order("Ravi", "+919811111111", ITEMS)
    ready = await service.update_status(order.id, OrderStatus.READY)

    with pytest.raises(InvalidTransition):
        await service.update_status(order.id, OrderStatus.READY)
    assert service.get_order(order.id).otp == ready.otp
    assert service.get_order(order.id).updated_at == ready.updated_at


async def test_lost_race_is_revalidated(service, repository):
    order = await service.create_manual_order("Ravi", "+919811111111", ITEMS)
    stale = repository.get_order(order.id)

    # Another terminal marks it ready between our read and our write
    await service.update_status(order.id, OrderStatus.READY)
    assert not repository.compare_and_set(stale, apply_transition(stale, OrderStatus.READY))

    with pytest.raises(InvalidTransition):
        await service.update_status(order.id, OrderStatus.READY)


async def test_unknown_order(service):
    with pytest.raises(OrderNotFound):
        await service.update_status("missing", OrderStatus.READY)


async def test_customer_room_follows_the_order(service, broadcaster):
    order = await place(service)
    room = order_room(order.id)
    assert broadcaster.room_events(room) == []

    await service.confirm_payment(order.id, PaymentMethod.OFFLINE)
    await service.update_status(order.id, OrderStatus.PREPARING)
    ready = await service.update_status(order.id, OrderStatus.READY)

    assert broadcaster.room_events(room) == ["order-status-updated"] * 3
    last = [event for target, event in broadcaster.published if target == room][-1]
    assert last.data.status == OrderStatus.READY
    assert "otp" not in last.to_frame()["data"]
    assert ready.otp is not None
