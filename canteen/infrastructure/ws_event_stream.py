import asyncio
import json
import logging
from typing import AsyncIterator

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from canteen.domain.errors import ChannelDisconnected, Unauthorized
from canteen.domain.events import DomainEvent, EventType
from canteen.interfaces.IEventStream import IEventStream

logger = logging.getLogger(__name__)

EVENT_NAMES = {event.value for event in EventType}


class WebSocketEventStream(IEventStream):
    """Client end of the ``/ws`` staff channel."""

    def __init__(self, url: str, staff_token: str, open_timeout: float = 5.0):
        self.url = url
        self.staff_token = staff_token
        self.open_timeout = open_timeout
        self._ws = None

    async def connect(self) -> None:
        await self.close()
        try:
            self._ws = await websockets.connect(self.url, open_timeout=self.open_timeout)
            await self._ws.send(json.dumps({"action": "join-staff-room", "token": self.staff_token}))
            reply = json.loads(await asyncio.wait_for(self._ws.recv(), self.open_timeout))
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            self._ws = None
            raise ChannelDisconnected(f"Could not join staff room: {e}") from e

        if reply.get("event") != "joined-staff-room":
            await self.close()
            message = (reply.get("data") or {}).get("message") or "Staff room join refused"
            raise Unauthorized(message)

    async def events(self) -> AsyncIterator[DomainEvent]:
        if self._ws is None:
            raise ChannelDisconnected("Not connected")
        try:
            async for raw in self._ws:
                try:
                    frame = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring malformed frame from staff room")
                    continue
                name = frame.get("event")
                if name in EVENT_NAMES:
                    try:
                        event = DomainEvent.from_frame(frame)
                    except ValidationError:
                        logger.warning(f"Ignoring {name} frame with unexpected payload")
                        continue
                    yield event
                elif name == "error":
                    logger.warning(f"Staff room error: {(frame.get('data') or {}).get('message')}")
        except ConnectionClosed as e:
            raise ChannelDisconnected(f"Connection closed ({e})") from e
        raise ChannelDisconnected("Connection closed")

    async def close(self) -> None:
        if self._ws is not None:
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except WebSocketException as e:
                logger.debug(f"Error while closing staff socket: {e}")
