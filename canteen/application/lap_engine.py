"""Kitchen batch ("lap") aggregation.

Lap membership is frozen when staff declare a lap, but the item totals shown
for a lap or for the unlapped remainder are always recomputed from the live
active order set. Nothing here keeps counters between calls, so a refresh
that adds, completes or cancels orders can never leave a total stale.

Laps belong to one terminal session and are not shared with other terminals.
"""

from datetime import datetime
from typing import Iterable, List, Sequence

from canteen.application.clock import utcnow
from canteen.domain.errors import NothingToLap
from canteen.domain.models import ItemTally, Lap, LapSummary, Order


def _arrival_order(orders: Iterable[Order]) -> List[Order]:
    return sorted(orders, key=lambda o: (o.created_at, o.order_number))


def tally(orders: Iterable[Order]) -> List[ItemTally]:
    """Sum quantities per item name, biggest first.

    Ties keep the order in which each name first appeared.
    """
    totals: dict[str, int] = {}
    for order in _arrival_order(orders):
        for item in order.items:
            totals[item.name] = totals.get(item.name, 0) + item.quantity
    # sorted() is stable, so equal quantities stay in first-seen order
    ranked = sorted(totals.items(), key=lambda pair: -pair[1])
    return [ItemTally(name=name, quantity=qty) for name, qty in ranked]


def lapped_ids(laps: Iterable[Lap]) -> set[str]:
    ids: set[str] = set()
    for lap in laps:
        ids |= lap.member_order_ids
    return ids


def unlapped_orders(active_orders: Iterable[Order], laps: Iterable[Lap]) -> List[Order]:
    taken = lapped_ids(laps)
    return [o for o in active_orders if o.id not in taken]


def current_items(active_orders: Iterable[Order], laps: Iterable[Lap]) -> List[ItemTally]:
    return tally(unlapped_orders(active_orders, laps))


def declare_lap(
    active_orders: Iterable[Order],
    laps: Sequence[Lap],
    now: datetime | None = None,
) -> Lap:
    members = frozenset(o.id for o in unlapped_orders(active_orders, laps))
    if not members:
        raise NothingToLap()
    next_number = max((lap.lap_number for lap in laps), default=0) + 1
    return Lap(lap_number=next_number, member_order_ids=members, declared_at=now or utcnow())


def lap_items(lap: Lap, active_orders: Iterable[Order]) -> List[ItemTally]:
    return tally(o for o in active_orders if o.id in lap.member_order_ids)


class LapEngine:
    """The lap sequence of a single kitchen terminal session."""

    def __init__(self):
        self._laps: List[Lap] = []

    @property
    def laps(self) -> tuple[Lap, ...]:
        return tuple(self._laps)

    def declare(self, active_orders: Iterable[Order], now: datetime | None = None) -> Lap:
        lap = declare_lap(active_orders, self._laps, now=now)
        self._laps.append(lap)
        return lap

    def current_items(self, active_orders: Iterable[Order]) -> List[ItemTally]:
        return current_items(active_orders, self._laps)

    def lap_items(self, lap_number: int, active_orders: Iterable[Order]) -> List[ItemTally]:
        for lap in self._laps:
            if lap.lap_number == lap_number:
                return lap_items(lap, active_orders)
        raise KeyError(lap_number)

    def summaries(self, active_orders: Iterable[Order]) -> List[LapSummary]:
        active = list(active_orders)
        return [LapSummary(lap=lap, items=lap_items(lap, active)) for lap in self._laps]
