from twilio.rest import Client
from twilio.base.exceptions import TwilioException
import logging

from canteen.domain.models import Order

logger = logging.getLogger(__name__)

class NotificationService:
    def __init__(self, account_sid: str | None = None, auth_token: str | None = None, from_number: str | None = None):
        self.client = None
        self.enabled = False
        self.from_number = from_number

        # Only initialize if credentials exist in .env
        if account_sid and auth_token and from_number:
            try:
                self.client = Client(account_sid, auth_token)
                self.enabled = True
                logger.info("✅ NotificationService: Twilio Client Initialized")
            except TwilioException as e:
                logger.error(f"❌ Failed to initialize Twilio Client: {e}")
        else:
            logger.warning("⚠️ NotificationService: Credentials missing in .env. Notifications disabled.")

    @staticmethod
    def _whatsapp(number: str) -> str:
        # Twilio requires the "whatsapp:" prefix
        return number if number.startswith("whatsapp:") else f"whatsapp:{number}"

    def notify_customer_ready(self, order: Order) -> bool:
        """Sends the pickup OTP to the customer over WhatsApp."""
        if not self.enabled or not order.otp:
            return False

        item_summary = "\n".join(f"- {item.quantity}x {item.name}" for item in order.items)
        message_body = (
            f"🍽️ *Order {order.order_number} is ready for pickup!*\n\n"
            f"{item_summary}\n\n"
            f"Show this code at the counter: *{order.otp}*"
        )

        try:
            self.client.messages.create(
                from_=self._whatsapp(self.from_number),
                body=message_body,
                to=self._whatsapp(order.customer_contact)
            )
            logger.info(f"✅ Ready notification sent for order {order.order_number}")
            return True
        except TwilioException as e:
            # The order is ready either way, the counter still shows the code
            logger.error(f"❌ Failed to send ready notification for {order.order_number}: {e}")
            return False
