from unittest import mock

import pytest

from canteen.application import otp
from canteen.domain.enums import OrderStatus, PaymentStatus


def test_issue_otp_is_zero_padded():
    with mock.patch("canteen.application.otp.secrets.randbelow", return_value=7):
        assert otp.issue_otp() == "0007"


def test_issue_otp_covers_range_bounds():
    with mock.patch("canteen.application.otp.secrets.randbelow", return_value=9999):
        assert otp.issue_otp() == "9999"
    for _ in range(50):
        code = otp.issue_otp()
        assert len(code) == 4 and code.isdigit()


@pytest.mark.parametrize("code", ["123", "12345", "12a4", "", None, 1234, " 123", "١٢٣٤"])
def test_malformed_codes(code):
    assert not otp.is_well_formed(code)


def test_verify(order_factory):
    ready = order_factory(status=OrderStatus.READY, payment_status=PaymentStatus.PAID, otp="4821")
    assert otp.verify(ready, "4821")
    assert not otp.verify(ready, "0000")
    assert not otp.verify(ready, "482")
    assert ready.status == OrderStatus.READY


def test_verify_without_issued_code(order_factory):
    assert not otp.verify(order_factory(), "0000")
