"""
Websocket transport for the relay.

Each connection owns an outbound queue drained by its own writer task, so
delivering to a slow or dead peer never delays the caller or other peers.
``WebSocketGateway`` exposes these connections through the ``Gateway``
interface used by the session coordinator and message router.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from RelayChat.core.message.protocol import Event, EventType
from RelayChat.core.server.interfaces import ConnectionRegistry, Gateway

logger = logging.getLogger(__name__)

# RFC 6455 "try again later", used when a peer cannot keep up
CLOSE_CODE_OVERLOADED = 1013


@dataclass(frozen=True)
class _CloseRequest:
    code: int
    reason: str


class WebSocketConnection:
    """
    Wrapper around ServerConnection with a bounded outbound queue.

    Frames are queued with ``enqueue`` and written by a background task
    started with ``start``. A peer whose queue reaches ``queue_size`` is
    closed instead of making senders wait.
    """

    def __init__(
        self,
        websocket: ServerConnection,
        conn_id: Optional[str] = None,
        queue_size: int = 256
    ):
        """
        Initialize WebSocket connection wrapper.

        Args:
            websocket: Underlying websocket connection
            conn_id: Connection identifier (generated if omitted)
            queue_size: Maximum number of frames waiting for this peer
        """
        self._websocket = websocket
        self.conn_id: str = conn_id or uuid.uuid4().hex
        self._queue_size = queue_size
        self._outbox: "asyncio.Queue[Union[str, _CloseRequest]]" = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def pending(self) -> int:
        """Number of queued frames not yet written."""
        return self._outbox.qsize()

    def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"relay-writer-{self.conn_id}")

    def enqueue(self, frame: str) -> bool:
        """
        Queue a frame for delivery.

        Returns:
            True if the frame was queued
        """
        if self._closing:
            return False
        if self._outbox.qsize() >= self._queue_size:
            logger.warning("Outbound queue full for %s (%d frames), closing connection",
                           self.conn_id, self._outbox.qsize())
            self._abort(CLOSE_CODE_OVERLOADED, "Outbound queue full")
            return False
        self._outbox.put_nowait(frame)
        return True

    def close_soon(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection after the frames queued so far are written."""
        if self._closing:
            return
        self._closing = True
        self._outbox.put_nowait(_CloseRequest(code, reason))

    def is_open(self) -> bool:
        """Check if the connection still accepts frames."""
        return not self._closing

    async def finish(self, timeout: float = 5.0) -> None:
        """
        Flush pending frames, close, and stop the writer task.

        Args:
            timeout: Seconds to wait for the flush before cancelling
        """
        self.close_soon()
        if self._writer is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._writer), timeout)
        except asyncio.TimeoutError:
            logger.debug("Timed out flushing %s, cancelling writer", self.conn_id)
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass

    async def _drain(self) -> None:
        """Write queued frames until a close request or a dead socket."""
        while True:
            item = await self._outbox.get()
            if isinstance(item, _CloseRequest):
                await self._close(item.code, item.reason)
                return
            try:
                await self._websocket.send(item)
            except ConnectionClosed:
                logger.debug("Peer %s went away, dropping %d pending frames", self.conn_id, self.pending)
                self._closing = True
                return
            except Exception as e:
                logger.warning("Failed to send to %s: %s", self.conn_id, e)
                self._closing = True
                await self._close(1011, "Send failure")
                return

    def _abort(self, code: int, reason: str) -> None:
        self._closing = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
        self._writer = asyncio.create_task(self._close(code, reason))

    async def _close(self, code: int, reason: str) -> None:
        try:
            await self._websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("Error closing connection %s: %s", self.conn_id, e)


class WebSocketConnectionRegistry(ConnectionRegistry):
    """Live websocket connections keyed by connection identifier."""

    def __init__(self):
        self._connections: Dict[str, WebSocketConnection] = {}

    def register(self, connection: WebSocketConnection) -> None:
        self._connections[connection.conn_id] = connection
        logger.debug("Registered connection %s (%d open)", connection.conn_id, len(self._connections))

    def unregister(self, connection_id: str) -> Optional[WebSocketConnection]:
        return self._connections.pop(connection_id, None)

    def get_connection(self, connection_id: str) -> Optional[WebSocketConnection]:
        return self._connections.get(connection_id)

    def get_all_connections(self) -> Dict[str, WebSocketConnection]:
        return self._connections.copy()

    def is_connected(self, connection_id: str) -> bool:
        connection = self._connections.get(connection_id)
        return connection is not None and connection.is_open()

    def __len__(self) -> int:
        return len(self._connections)


class WebSocketGateway(Gateway):
    """
    Gateway backed by a connection registry.

    Each event is serialized once and queued on every target connection;
    connections that are closing are skipped.
    """

    def __init__(self, connections: WebSocketConnectionRegistry):
        self._connections = connections

    def unicast(self, connection_id: str, event: EventType, payload: Any) -> bool:
        connection = self._connections.get_connection(connection_id)
        if connection is None:
            logger.debug("Dropping %s for unknown connection %s", event.value, connection_id)
            return False
        return connection.enqueue(Event(event, payload).serialize())

    def broadcast(self, event: EventType, payload: Any) -> int:
        frame = Event(event, payload).serialize()
        delivered = 0
        for connection in self._connections.get_all_connections().values():
            if connection.enqueue(frame):
                delivered += 1
        logger.debug("Broadcast %s to %d connections", event.value, delivered)
        return delivered

    def terminate(self, connection_id: str, reason: str = "") -> None:
        connection = self._connections.get_connection(connection_id)
        if connection is not None:
            connection.close_soon(1000, reason)


__all__ = [
    'CLOSE_CODE_OVERLOADED',
    'WebSocketConnection',
    'WebSocketConnectionRegistry',
    'WebSocketGateway',
]
