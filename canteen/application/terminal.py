"""A staff terminal session: kitchen display, pickup counter or dashboard.

The session never trusts event payloads. Every event, every (re)join and
every successful mutation triggers a full re-fetch, and all projections and
lap totals are recomputed from that snapshot.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Sequence

from pydantic import BaseModel

from canteen.application import otp as otp_verifier
from canteen.application.lap_engine import LapEngine
from canteen.application.payment_gate import is_visible_in_preparation
from canteen.application.subscriptions import EventSubscriptions, Handler, Subscription
from canteen.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import (
    ActionInFlight,
    ChannelDisconnected,
    InvalidOtpFormat,
    StoreUnavailable,
)
from canteen.domain.events import DomainEvent, EventType
from canteen.domain.models import ItemTally, Lap, LapSummary, Order, OrderItem
from canteen.interfaces.IEventStream import IEventStream
from canteen.interfaces.IOrderGateway import IOrderGateway

logger = logging.getLogger(__name__)

RECONNECT_DELAYS = (1, 2, 5, 10, 30)
MANUAL_ORDER_KEY = "manual-order"


class DashboardSnapshot(BaseModel):
    counts: Dict[OrderStatus, int]
    pending_payments: List[Order]
    channel_connected: bool
    banner: str | None = None


def _by_arrival(orders) -> List[Order]:
    return sorted(orders, key=lambda o: (o.created_at, o.order_number))


class TerminalSession:

    def __init__(
        self,
        gateway: IOrderGateway,
        stream: IEventStream,
        reconnect_delays: Sequence[float] = RECONNECT_DELAYS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.stream = stream
        self.reconnect_delays = tuple(reconnect_delays) or (1,)
        self._sleep = sleep

        self.orders: List[Order] = []
        self.laps = LapEngine()
        self.subscriptions = EventSubscriptions()
        self.in_flight: set[str] = set()

        self.channel_connected = False
        self.store_available = True
        self.banner: str | None = None
        self._closed = False

    # --- PROJECTIONS ---

    @property
    def kitchen_orders(self) -> List[Order]:
        return _by_arrival(o for o in self.orders if is_visible_in_preparation(o))

    @property
    def pickup_orders(self) -> List[Order]:
        return _by_arrival(o for o in self.orders if o.status == OrderStatus.READY)

    def dashboard(self) -> DashboardSnapshot:
        counts = {status: 0 for status in OrderStatus}
        for order in self.orders:
            counts[order.status] += 1
        pending = [
            o for o in self.orders
            if o.status == OrderStatus.PENDING
            and o.payment_method == PaymentMethod.OFFLINE
            and o.payment_status == PaymentStatus.PENDING
        ]
        return DashboardSnapshot(
            counts=counts,
            pending_payments=_by_arrival(pending),
            channel_connected=self.channel_connected,
            banner=self.banner,
        )

    # --- LAPS (kitchen) ---

    def declare_lap(self) -> Lap:
        lap = self.laps.declare(self.kitchen_orders)
        logger.info(f"Lap {lap.lap_number} declared with {len(lap.member_order_ids)} orders")
        return lap

    def current_items(self) -> List[ItemTally]:
        return self.laps.current_items(self.kitchen_orders)

    def lap_summaries(self) -> List[LapSummary]:
        return self.laps.summaries(self.kitchen_orders)

    def lap_items(self, lap_number: int) -> List[ItemTally]:
        """Items still cooking for one lap. Raises ``KeyError`` for an unknown lap."""
        return self.laps.lap_items(lap_number, self.kitchen_orders)

    # --- SUBSCRIPTIONS ---

    def subscribe(self, event_type: EventType | None, handler: Handler) -> Subscription:
        return self.subscriptions.subscribe(event_type, handler)

    # --- SYNC ---

    async def refresh(self) -> bool:
        """Re-fetch the authoritative order list. Returns ``False`` if the store is down."""
        try:
            orders = await self.gateway.list_orders()
        except StoreUnavailable as e:
            self._store_down(e)
            return False
        self.orders = orders
        self.store_available = True
        self.banner = None
        return True

    async def handle_event(self, event: DomainEvent):
        logger.debug(f"Event {event.type.value} for {event.data.order_number}, refetching")
        await self.refresh()
        await self.subscriptions.dispatch(event)

    async def run(self):
        """Stay joined to the staff room until ``close()``.

        Unauthorized errors from ``connect`` propagate; transport losses are
        retried with backoff, and every rejoin starts with a full re-fetch
        because events missed during the gap are not replayed.
        """
        attempt = 0
        while not self._closed:
            try:
                await self.stream.connect()
                self.channel_connected = True
                attempt = 0
                logger.info("✅ Joined staff room")
                await self.refresh()
                async for event in self.stream.events():
                    await self.handle_event(event)
                raise ChannelDisconnected("Event stream ended")
            except ChannelDisconnected as e:
                self.channel_connected = False
                if self._closed:
                    break
                delay = self.reconnect_delays[min(attempt, len(self.reconnect_delays) - 1)]
                attempt += 1
                logger.warning(f"⚠️ Real-time channel lost ({e.message}); retrying in {delay}s")
                await self._sleep(delay)

    async def close(self):
        self._closed = True
        self.subscriptions.clear()
        self.channel_connected = False
        await self.stream.close()

    # --- STAFF ACTIONS ---

    def can_act(self, order_id: str) -> bool:
        return self.store_available and order_id not in self.in_flight

    async def start_preparing(self, order_id: str) -> Order:
        return await self._mutate(order_id, lambda: self.gateway.update_status(order_id, OrderStatus.PREPARING))

    async def mark_ready(self, order_id: str) -> Order:
        return await self._mutate(order_id, lambda: self.gateway.update_status(order_id, OrderStatus.READY))

    async def hand_over(self, order_id: str, code: str) -> Order:
        """Verify the customer's OTP and mark the order picked up."""
        if not otp_verifier.is_well_formed(code):
            # Rejected here, the store never sees it
            raise InvalidOtpFormat()
        return await self._mutate(
            order_id, lambda: self.gateway.update_status(order_id, OrderStatus.PICKED_UP, otp=code)
        )

    async def complete(self, order_id: str) -> Order:
        return await self._mutate(order_id, lambda: self.gateway.update_status(order_id, OrderStatus.COMPLETED))

    async def cancel(self, order_id: str) -> Order:
        return await self._mutate(order_id, lambda: self.gateway.update_status(order_id, OrderStatus.CANCELLED))

    async def confirm_cash_payment(self, order_id: str) -> Order:
        return await self._mutate(order_id, lambda: self.gateway.confirm_payment(order_id))

    async def create_manual_order(self, customer_name: str, customer_contact: str, items: List[OrderItem]) -> Order:
        return await self._mutate(
            MANUAL_ORDER_KEY,
            lambda: self.gateway.create_manual_order(customer_name, customer_contact, items),
        )

    async def _mutate(self, key: str, request: Callable[[], Awaitable[Order]]) -> Order:
        # No optimistic edits: local state only changes through the refetch below
        if not self.store_available:
            raise StoreUnavailable(self.banner or "Order store unavailable")
        if key in self.in_flight:
            raise ActionInFlight(f"A request for {key} is already in flight")

        self.in_flight.add(key)
        try:
            order = await request()
        except StoreUnavailable as e:
            self._store_down(e)
            raise
        finally:
            self.in_flight.discard(key)

        await self.refresh()
        return order

    def _store_down(self, error: StoreUnavailable):
        self.store_available = False
        self.banner = error.message
        logger.warning(f"⚠️ Order store unavailable: {error.message}")
