import asyncio
import json
import logging
import uuid
from collections import defaultdict

import redis.asyncio as redis
from fastapi import WebSocketDisconnect
from redis.exceptions import RedisError

from canteen.domain.events import DomainEvent

logger = logging.getLogger(__name__)

# Pushed into an outbox to make its writer close the socket
CLOSE = None


class StaffConnection:
    """One connected terminal socket and its ordered outbox.

    A single writer task drains the outbox, so frames reach the socket in the
    order they were offered no matter how many publishers are active.
    """

    def __init__(self, websocket, queue_size: int = 100):
        self.websocket = websocket
        self.id = uuid.uuid4().hex
        self.authenticated = False
        self.overflowed = False
        self.closed = False
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    def offer(self, frame: dict) -> bool:
        if self.overflowed or self.closed:
            return False
        try:
            self.outbox.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            # Too slow to keep up: drop the backlog and make it reconnect + refetch
            self.overflowed = True
            while not self.outbox.empty():
                self.outbox.get_nowait()
            self.outbox.put_nowait(CLOSE)
            return False

    async def drain(self, close_code: int = 1013):
        try:
            while True:
                frame = await self.outbox.get()
                if frame is CLOSE:
                    await self.websocket.close(code=close_code)
                    return
                await self.websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # Socket went away under us; the receive loop cleans up membership
            self.closed = True
            logger.info(f"Stopped writing to {self.id}: {e!r}")


class Broadcaster:
    """Room-scoped fan-out of domain events to connected terminals.

    Every worker delivers to its own sockets. When Redis is reachable, events
    are also published on a shared channel so the other workers relay them to
    theirs. If Redis is missing or fails, delivery continues in-process only.
    """

    def __init__(self, redis_url: str | None = None, channel: str = "canteen:rooms"):
        self.redis_url = redis_url
        self.channel = channel
        self.instance_id = uuid.uuid4().hex
        self.redis = None
        self.redis_available = False
        self._pubsub = None
        self._listener: asyncio.Task | None = None
        self._rooms: dict[str, set[StaffConnection]] = defaultdict(set)

    async def start(self):
        if not self.redis_url:
            logger.info("Broadcaster: no REDIS_URL, delivering in-process only.")
            return
        try:
            self.redis = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=1  # Fail fast if Redis is down
            )
            await self.redis.ping()
            self._pubsub = self.redis.pubsub()
            await self._pubsub.subscribe(self.channel)
            self._listener = asyncio.create_task(self._listen())
            self.redis_available = True
            logger.info("✅ Broadcaster: Connected to Redis.")
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ Broadcaster: Redis unreachable ({e}). Using in-process fan-out.")
            self.redis_available = False

    async def stop(self):
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
        if self._pubsub:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except RedisError as e:
                logger.warning(f"Broadcaster: error closing pubsub: {e}")
        if self.redis:
            await self.redis.aclose()
        self.redis_available = False

    # --- Room membership ---

    def join(self, room: str, connection: StaffConnection):
        self._rooms[room].add(connection)

    def leave(self, room: str, connection: StaffConnection):
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]

    def disconnect(self, connection: StaffConnection):
        for room in list(self._rooms):
            self.leave(room, connection)

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    # --- Publishing ---

    async def publish(self, room: str, event: DomainEvent) -> int:
        """Deliver ``event`` to ``room``. Returns the number of local sockets reached."""
        frame = event.to_frame()
        delivered = self._deliver_local(room, frame)

        if self.redis_available:
            message = json.dumps({"origin": self.instance_id, "room": room, "frame": frame})
            try:
                await self.redis.publish(self.channel, message)
            except RedisError as e:
                self._handle_redis_error(e)

        logger.debug(f"Broadcast {frame['event']} to {room} ({delivered} local sockets)")
        return delivered

    def _deliver_local(self, room: str, frame: dict) -> int:
        delivered = 0
        for connection in list(self._rooms.get(room, ())):
            if connection.offer(frame):
                delivered += 1
            else:
                logger.warning(f"Dropping slow socket {connection.id} from {room}")
                self.disconnect(connection)
        return delivered

    async def _listen(self):
        try:
            async for message in self._pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    payload = json.loads(message["data"])
                except ValueError:
                    logger.warning("Broadcaster: ignoring malformed relay message")
                    continue
                if (
                    not isinstance(payload, dict)
                    or not isinstance(payload.get("room"), str)
                    or not isinstance(payload.get("frame"), dict)
                ):
                    logger.warning("Broadcaster: ignoring relay message without room or frame")
                    continue
                # Our own publishes were already delivered locally
                if payload.get("origin") == self.instance_id:
                    continue
                self._deliver_local(payload["room"], payload["frame"])
        except RedisError as e:
            self._handle_redis_error(e)

    def _handle_redis_error(self, e):
        """Log error and stop using Redis; local delivery keeps working."""
        logger.error(f"❌ Redis Error: {e}. Switching to in-process fan-out.")
        self.redis_available = False
