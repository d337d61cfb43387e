from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from canteen.core.config import Settings
from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.events import STAFF_ROOM
from canteen.domain.models import Order, OrderItem
from canteen.infrastructure.database import build_session_factory, create_tables
from canteen.infrastructure.repositories.order_repository import SqlOrderRepository
from canteen.main import create_app

STAFF_TOKEN = "test-staff-token"
PAYMENT_SECRET = "test-payment-secret"
BASE_TIME = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)

BURGER_AND_FRIES = [("Burger", "150", 2), ("Fries", "80", 1)]


def build_order(
    order_id: str = "O1",
    items=BURGER_AND_FRIES,
    status: OrderStatus = OrderStatus.PENDING,
    payment_method: PaymentMethod = PaymentMethod.OFFLINE,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    otp: str | None = None,
    minute: int = 0,
) -> Order:
    created = BASE_TIME + timedelta(minutes=minute)
    return Order(
        id=order_id,
        order_number=f"250314-{minute + 1:04d}",
        customer_name="Asha",
        customer_contact="+919800000000",
        items=[OrderItem(name=name, unit_price=Decimal(price), quantity=qty) for name, price, qty in items],
        status=status,
        payment_method=payment_method,
        payment_status=payment_status,
        otp=otp,
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def order_factory():
    return build_order


class RecordingBroadcaster:
    """Stands in for the socket broadcaster and keeps what was published."""

    def __init__(self):
        self.published = []

    async def publish(self, room, event):
        self.published.append((room, event))
        return 0

    def room_events(self, room):
        return [event.type.value for target, event in self.published if target == room]

    @property
    def event_types(self):
        return self.room_events(STAFF_ROOM)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def session_factory(tmp_path):
    factory = build_session_factory(f"sqlite:///{tmp_path / 'orders.db'}")
    create_tables(factory)
    return factory


@pytest.fixture
def repository(session_factory):
    return SqlOrderRepository(session_factory, timezone_name="Asia/Kolkata")


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'api.db'}",
        REDIS_URL=None,
        STAFF_TOKEN=STAFF_TOKEN,
        PAYMENT_WEBHOOK_SECRET=PAYMENT_SECRET,
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
        TWILIO_FROM_NUMBER=None,
        DB_MAX_RETRIES=1,
        AUTO_PREPARE_ON_PAYMENT=False,
    )


@pytest.fixture
def client(test_settings):
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {STAFF_TOKEN}"}
