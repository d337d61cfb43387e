from abc import ABC, abstractmethod
from typing import AsyncIterator

from canteen.domain.events import DomainEvent

class IEventStream(ABC):
    """A terminal's connection to the staff room.

    Transport loss surfaces as ``ChannelDisconnected`` from ``connect`` or
    while iterating ``events``.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the transport, authenticate and join the staff room."""

    @abstractmethod
    def events(self) -> AsyncIterator[DomainEvent]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
