import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from canteen.domain.events import STAFF_ROOM, order_room
from canteen.infrastructure.broadcaster import StaffConnection
from canteen.interfaces.dependencies import token_matches

router = APIRouter()
logger = logging.getLogger(__name__)


def _frame(event: str, **data) -> dict:
    return {"event": event, "data": data}


@router.websocket("/ws")
async def staff_socket(websocket: WebSocket):
    """
    Real-time channel for staff terminals and customers tracking an order.

    Client actions: `join-staff-room` (with `token`), `leave-staff-room`,
    `join-order-room` / `leave-order-room` (with `orderId`, no token), `ping`.
    Everything published to a joined room arrives as `{"event", "data"}` frames.
    """
    app = websocket.app
    broadcaster = app.state.broadcaster
    await websocket.accept()

    connection = StaffConnection(websocket, queue_size=app.state.settings.SOCKET_QUEUE_SIZE)
    writer = asyncio.create_task(connection.drain())
    logger.info(f"Terminal connected: {connection.id}")

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                connection.offer(_frame("error", message="Malformed message"))
                continue
            action = message.get("action") if isinstance(message, dict) else None

            if action == "join-staff-room":
                if not token_matches(message.get("token"), app.state.settings.STAFF_TOKEN):
                    connection.offer(_frame("error", message="Unauthorized: Staff access required"))
                    continue
                connection.authenticated = True
                broadcaster.join(STAFF_ROOM, connection)
                connection.offer(_frame("joined-staff-room", room=STAFF_ROOM))
                logger.info(f"Terminal {connection.id} joined {STAFF_ROOM}")

            elif action == "leave-staff-room":
                broadcaster.leave(STAFF_ROOM, connection)
                connection.offer(_frame("left-staff-room", room=STAFF_ROOM))

            elif action in ("join-order-room", "leave-order-room"):
                order_id = message.get("orderId")
                if not isinstance(order_id, str) or not order_id:
                    connection.offer(_frame("error", message="Order ID is required"))
                    continue
                room = order_room(order_id)
                if action == "join-order-room":
                    broadcaster.join(room, connection)
                    connection.offer(_frame("joined-order-room", orderId=order_id, room=room))
                else:
                    broadcaster.leave(room, connection)
                    connection.offer(_frame("left-order-room", orderId=order_id, room=room))

            elif action == "ping":
                connection.offer(_frame("pong"))

            else:
                connection.offer(_frame("error", message=f"Unknown action: {action}"))
    except WebSocketDisconnect:
        logger.info(f"Terminal disconnected: {connection.id}")
    finally:
        broadcaster.disconnect(connection)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
