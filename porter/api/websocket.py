"""WebSocket rooms for real-time order and fleet updates."""

import asyncio
from typing import Any, Literal
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from porter.api.dependencies import DispatchServices
from porter.config import get_settings
from porter.core.notifications import FLEET_CHANNEL, driver_channel, order_channel
from porter.utils.logging import get_logger

logger = get_logger(__name__)


class ClientFrame(BaseModel):
    """Control frame sent by a subscriber."""

    action: Literal["join-order", "join-fleet", "join-driver", "leave", "ping"]
    order_id: str | None = Field(default=None, validation_alias=AliasChoices("orderId", "order_id"))
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("userId", "user_id"))
    channel: str | None = None


class Connection:
    """One subscriber with its own outbound queue and writer task."""

    def __init__(self, websocket: WebSocket, queue_size: int):
        self.id = uuid4().hex
        self.websocket = websocket
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.channels: set[str] = set()

    def offer(self, frame: dict[str, Any]) -> bool:
        """Queue a frame without waiting; ``False`` when the subscriber is too slow."""
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    async def writer(self) -> None:
        while True:
            frame = await self.queue.get()
            await self.websocket.send_json(frame)


class ConnectionManager:
    """
    Channel registry and broadcaster.

    ``publish`` only enqueues: each connection drains its own queue, so one
    stalled client never delays a mutation or the other subscribers, and
    frames on a channel reach a given client in publish order.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self.queue_size = queue_size or get_settings().websocket_queue_size
        self.active_connections: dict[str, Connection] = {}
        self.channels: dict[str, set[str]] = {}

    async def connect(self, websocket: WebSocket) -> Connection:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        connection = Connection(websocket, self.queue_size)
        self.active_connections[connection.id] = connection
        logger.info("websocket_connected", connection_id=connection.id)
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Remove a connection from every channel it joined."""
        for channel in list(connection.channels):
            self.leave(connection, channel)
        if self.active_connections.pop(connection.id, None) is not None:
            logger.info("websocket_disconnected", connection_id=connection.id)

    def join(self, connection: Connection, channel: str) -> None:
        self.channels.setdefault(channel, set()).add(connection.id)
        connection.channels.add(channel)
        logger.debug("channel_joined", connection_id=connection.id, channel=channel)

    def leave(self, connection: Connection, channel: str) -> None:
        members = self.channels.get(channel)
        if members is not None:
            members.discard(connection.id)
            if not members:
                del self.channels[channel]
        connection.channels.discard(channel)

    def subscribers(self, channel: str) -> int:
        return len(self.channels.get(channel, ()))

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        frame = {"eventName": event, "data": payload}
        for connection_id in list(self.channels.get(channel, ())):
            connection = self.active_connections.get(connection_id)
            if connection is None:
                continue
            if not connection.offer(frame):
                logger.warning(
                    "websocket_frame_dropped",
                    connection_id=connection_id,
                    channel=channel,
                    event_name=event,
                )


async def handle_websocket(
    websocket: WebSocket,
    manager: ConnectionManager,
    services: DispatchServices,
) -> None:
    """Serve one subscriber until it disconnects."""
    connection = await manager.connect(websocket)
    writer = asyncio.create_task(connection.writer())

    connection.offer({"eventName": "connected", "data": {"connection_id": connection.id}})

    try:
        while True:
            data = await websocket.receive_json()

            try:
                frame = ClientFrame.model_validate(data)
                reply = await _handle_frame(frame, connection, manager, services)
            except ValidationError as e:
                reply = {
                    "eventName": "error",
                    "data": {"message": "Invalid message format", "details": str(e)},
                }

            if reply is not None:
                connection.offer(reply)

    except WebSocketDisconnect:
        logger.info("websocket_client_disconnected", connection_id=connection.id)

    except Exception as e:
        logger.error("websocket_error", connection_id=connection.id, error=str(e))

    finally:
        manager.disconnect(connection)
        writer.cancel()
        (outcome,) = await asyncio.gather(writer, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.debug("websocket_writer_failed", connection_id=connection.id, error=str(outcome))


async def _handle_frame(
    frame: ClientFrame,
    connection: Connection,
    manager: ConnectionManager,
    services: DispatchServices,
) -> dict[str, Any] | None:
    if frame.action == "ping":
        return {"eventName": "pong", "data": {}}

    if frame.action == "join-fleet":
        channel = FLEET_CHANNEL

    elif frame.action == "join-order":
        if not frame.order_id:
            return _error("orderId is required")
        # Clients may follow an order by its code; rooms are keyed by canonical id.
        order = await services.resolver.resolve_order(frame.order_id)
        if order is None:
            return _error(f"Order '{frame.order_id}' not found")
        channel = order_channel(order.id)

    elif frame.action == "join-driver":
        if not frame.user_id:
            return _error("userId is required")
        channel = driver_channel(frame.user_id)

    else:
        if not frame.channel:
            return _error("channel is required")
        manager.leave(connection, frame.channel)
        return {"eventName": "left", "data": {"channel": frame.channel}}

    manager.join(connection, channel)
    return {"eventName": "joined", "data": {"channel": channel}}


def _error(message: str) -> dict[str, Any]:
    return {"eventName": "error", "data": {"message": message}}
