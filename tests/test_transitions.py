from decimal import Decimal

import pytest

from canteen.application.transitions import apply_transition, can_transition
from canteen.domain.enums import TRANSITIONS, OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import InvalidOtpFormat, InvalidTransition, NotPayable, OtpMismatch

PAID = PaymentStatus.PAID


def test_total_is_sum_of_lines(order_factory):
    order = order_factory()
    assert order.total == Decimal("380")
    assert order.to_api()["total"] == "380"


def test_unpaid_offline_order_cannot_start_preparing(order_factory):
    order = order_factory()
    with pytest.raises(NotPayable):
        apply_transition(order, OrderStatus.PREPARING)
    assert not can_transition(order, OrderStatus.PREPARING)


def test_paid_order_starts_preparing_and_keeps_input_untouched(order_factory):
    order = order_factory(payment_status=PAID)
    moved = apply_transition(order, OrderStatus.PREPARING)
    assert moved.status == OrderStatus.PREPARING
    assert order.status == OrderStatus.PENDING
    assert moved.updated_at > order.updated_at


def test_ready_issues_four_digit_otp(order_factory):
    order = order_factory(status=OrderStatus.PREPARING, payment_status=PAID)
    assert order.otp is None
    ready = apply_transition(order, OrderStatus.READY)
    assert ready.otp is not None
    assert len(ready.otp) == 4 and ready.otp.isdigit()


def test_reentering_ready_is_rejected_without_new_otp(order_factory):
    ready = order_factory(status=OrderStatus.READY, payment_status=PAID, otp="4821")
    with pytest.raises(InvalidTransition):
        apply_transition(ready, OrderStatus.READY)
    assert ready.otp == "4821"


def test_pickup_requires_matching_otp(order_factory):
    ready = order_factory(status=OrderStatus.READY, payment_status=PAID, otp="4821")
    with pytest.raises(OtpMismatch):
        apply_transition(ready, OrderStatus.PICKED_UP, otp="0000")
    with pytest.raises(InvalidOtpFormat):
        apply_transition(ready, OrderStatus.PICKED_UP, otp="48")
    with pytest.raises(InvalidOtpFormat):
        apply_transition(ready, OrderStatus.PICKED_UP)
    assert ready.status == OrderStatus.READY


def test_pickup_burns_the_otp(order_factory):
    ready = order_factory(status=OrderStatus.READY, payment_status=PAID, otp="4821")
    picked = apply_transition(ready, OrderStatus.PICKED_UP, otp="4821")
    assert picked.status == OrderStatus.PICKED_UP
    assert picked.otp is None


def test_second_pickup_is_rejected(order_factory):
    picked = order_factory(status=OrderStatus.PICKED_UP, payment_status=PAID)
    with pytest.raises(InvalidTransition):
        apply_transition(picked, OrderStatus.PICKED_UP, otp="4821")


@pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.PREPARING])
def test_cancel_allowed_before_ready(order_factory, status):
    order = order_factory(status=status, payment_status=PAID)
    assert apply_transition(order, OrderStatus.CANCELLED).status == OrderStatus.CANCELLED


@pytest.mark.parametrize(
    "status", [OrderStatus.READY, OrderStatus.PICKED_UP, OrderStatus.COMPLETED, OrderStatus.CANCELLED]
)
def test_cancel_forbidden_once_ready(order_factory, status):
    order = order_factory(status=status, payment_status=PAID, otp="1234" if status == OrderStatus.READY else None)
    with pytest.raises(InvalidTransition):
        apply_transition(order, OrderStatus.CANCELLED)


def test_no_skipping_states(order_factory):
    order = order_factory(payment_status=PAID)
    for target in (OrderStatus.READY, OrderStatus.PICKED_UP, OrderStatus.COMPLETED):
        with pytest.raises(InvalidTransition):
            apply_transition(order, target, otp="1234")


def test_full_happy_path(order_factory):
    order = order_factory(payment_method=PaymentMethod.ONLINE, payment_status=PAID)
    seen = [order.status]
    order = apply_transition(order, OrderStatus.PREPARING)
    seen.append(order.status)
    order = apply_transition(order, OrderStatus.READY)
    seen.append(order.status)
    order = apply_transition(order, OrderStatus.PICKED_UP, otp=order.otp)
    seen.append(order.status)
    order = apply_transition(order, OrderStatus.COMPLETED)
    seen.append(order.status)

    for src, dst in zip(seen, seen[1:]):
        assert dst in TRANSITIONS[src]
    assert order.total == Decimal("380")


def test_terminal_states_have_no_exits():
    assert TRANSITIONS[OrderStatus.COMPLETED] == frozenset()
    assert TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


def test_plain_string_targets(order_factory):
    order = order_factory()
    assert can_transition(order, "completed") is False
    assert can_transition(order, "no-such-status") is False
    assert can_transition(order, "cancelled") is True
    with pytest.raises(InvalidTransition):
        apply_transition(order, "no-such-status")
    assert apply_transition(order, "cancelled").status == OrderStatus.CANCELLED
