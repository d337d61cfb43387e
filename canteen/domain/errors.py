class CanteenError(Exception):
    """Base class for every error the order pipeline reports to a caller."""

    code = "CANTEEN_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        super().__init__(self.message)


class InvalidTransition(CanteenError):
    """Requested status change is not allowed from the current status."""

    code = "INVALID_STATUS_TRANSITION"
    http_status = 409


class NotPayable(CanteenError):
    """Payment must be confirmed before the order can be prepared."""

    code = "NOT_PAYABLE"
    http_status = 409


class OtpMismatch(CanteenError):
    """Supplied OTP does not match the order."""

    code = "OTP_MISMATCH"
    http_status = 422


class InvalidOtpFormat(CanteenError):
    """OTP must be exactly 4 digits."""

    code = "INVALID_OTP_FORMAT"
    http_status = 422


class PaymentAlreadyConfirmed(CanteenError):
    """Payment already confirmed."""

    code = "PAYMENT_ALREADY_CONFIRMED"
    http_status = 409


class PaymentMethodMismatch(CanteenError):
    """Payment confirmation does not match the order's payment method."""

    code = "INVALID_PAYMENT_METHOD"
    http_status = 400


class InvalidPaymentStatus(CanteenError):
    """Payment status can only be set to paid."""

    code = "INVALID_PAYMENT_STATUS"
    http_status = 400


class OrderNotFound(CanteenError):
    """Order not found."""

    code = "ORDER_NOT_FOUND"
    http_status = 404


class Unauthorized(CanteenError):
    """Staff access required."""

    code = "UNAUTHORIZED"
    http_status = 401


class StoreUnavailable(CanteenError):
    """Order store is unavailable."""

    code = "STORE_UNAVAILABLE"
    http_status = 503


class NothingToLap(CanteenError):
    """There are no unlapped orders to batch."""

    code = "NOTHING_TO_LAP"


class ActionInFlight(CanteenError):
    """A request for this order is already in flight."""

    code = "ACTION_IN_FLIGHT"


class ChannelDisconnected(CanteenError):
    """Real-time channel is disconnected."""

    code = "CHANNEL_DISCONNECTED"


# Wire code -> exception class, used by clients to rebuild server errors
ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        InvalidTransition,
        NotPayable,
        OtpMismatch,
        InvalidOtpFormat,
        PaymentAlreadyConfirmed,
        PaymentMethodMismatch,
        InvalidPaymentStatus,
        OrderNotFound,
        Unauthorized,
        StoreUnavailable,
    )
}
