import inspect
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Union

from canteen.domain.events import DomainEvent, EventType

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Union[Awaitable[None], None]]


class Subscription:
    def __init__(self, registry: "EventSubscriptions", event_type: EventType | None, handler: Handler):
        self._registry = registry
        self.event_type = event_type
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._registry._contains(self)

    def unsubscribe(self):
        self._registry._remove(self)


class EventSubscriptions:
    """Listeners registered by one terminal session.

    ``event_type=None`` listens to every event. Closing the session calls
    ``clear()`` so no listener outlives it.
    """

    def __init__(self):
        self._by_type: dict[EventType | None, list[Subscription]] = defaultdict(list)

    def subscribe(self, event_type: EventType | None, handler: Handler) -> Subscription:
        subscription = Subscription(self, event_type, handler)
        self._by_type[event_type].append(subscription)
        return subscription

    async def dispatch(self, event: DomainEvent):
        targets = list(self._by_type.get(event.type, ())) + list(self._by_type.get(None, ()))
        for subscription in targets:
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # One broken view must not stop the others from updating
                logger.error(f"Listener for {event.type.value} failed", exc_info=True)

    def clear(self):
        self._by_type.clear()

    def _contains(self, subscription: Subscription) -> bool:
        return subscription in self._by_type.get(subscription.event_type, ())

    def _remove(self, subscription: Subscription):
        listeners = self._by_type.get(subscription.event_type)
        if listeners and subscription in listeners:
            listeners.remove(subscription)

    def __len__(self) -> int:
        return sum(len(listeners) for listeners in self._by_type.values())
