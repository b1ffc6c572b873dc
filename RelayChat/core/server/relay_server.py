"""
Relay server that composes the registry, coordinator, router and transport.

Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         RelayServer                          │
    │  ┌──────────────┐   ┌────────────────────┐   ┌─────────────┐ │
    │  │ Websocket    │──▶│ SessionCoordinator │──▶│  Registry   │ │
    │  │ handler      │   ├────────────────────┤   │  (+ lock)   │ │
    │  │ (per conn)   │──▶│ MessageRouter      │──▶│             │ │
    │  └──────────────┘   └─────────┬──────────┘   └─────────────┘ │
    │         ▲                     ▼                              │
    │         └──────────── WebSocketGateway (outbound queues)     │
    └──────────────────────────────────────────────────────────────┘

One handler task runs per connection. It decodes frames, dispatches them to
the coordinator or router and reports the disconnect when the socket closes.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from pydantic import ValidationError
from websockets.asyncio.server import Server, ServerConnection
from websockets.exceptions import ConnectionClosed

from RelayChat.config import config
from RelayChat.core.exceptions import ProtocolError
from RelayChat.core.message.protocol import (
    DeleteFeatureRequestPayload,
    Event,
    EventType,
    FeatureRequestPayload,
    JoinPayload,
    UserTargetPayload,
    require_object,
)
from RelayChat.core.server.interfaces import Gateway, ServerLifecycle
from RelayChat.core.server.registry import Registry
from RelayChat.core.server.routing import MessageRouter
from RelayChat.core.server.session import SessionCoordinator
from RelayChat.core.server.transport import (
    WebSocketConnection,
    WebSocketConnectionRegistry,
    WebSocketGateway,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Any], Awaitable[Any]]


class RelayServer(ServerLifecycle):
    """
    Websocket chat relay.

    Example:
        relay = RelayServer()

        async with relay.run("0.0.0.0", 8080):
            await asyncio.Future()
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        gateway: Optional[Gateway] = None,
        outbound_queue_size: Optional[int] = None,
        close_timeout: Optional[float] = None
    ):
        """
        Initialize the relay.

        Args:
            registry: Shared state store (creates an empty one if None)
            gateway: Outbound delivery (defaults to the websocket gateway)
            outbound_queue_size: Per-connection outbound frame limit
            close_timeout: Seconds a closing connection gets to flush
        """
        self._registry = registry if registry is not None else Registry()
        self._connections = WebSocketConnectionRegistry()
        self._gateway = gateway if gateway is not None else WebSocketGateway(self._connections)

        self._coordinator = SessionCoordinator(self._registry, self._gateway)
        self._router = MessageRouter(self._registry, self._gateway)

        self._queue_size = outbound_queue_size or config.OUTBOUND_QUEUE_SIZE
        self._close_timeout = close_timeout if close_timeout is not None else config.CLOSE_TIMEOUT

        self._handlers: Dict[EventType, EventHandler] = {
            EventType.JOIN: self._on_join,
            EventType.MESSAGE: self._on_message,
            EventType.ADMIN_MESSAGE: self._on_admin_message,
            EventType.FEATURE_REQUEST: self._on_feature_request,
            EventType.BAN_USER: self._on_ban_user,
            EventType.UNBAN_USER: self._on_unban_user,
            EventType.DELETE_FEATURE_REQUEST: self._on_delete_feature_request,
        }

        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._server: Optional[Server] = None
        self._running = False

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def coordinator(self) -> SessionCoordinator:
        return self._coordinator

    @property
    def router(self) -> MessageRouter:
        return self._router

    @property
    def connections(self) -> WebSocketConnectionRegistry:
        return self._connections

    @property
    def port(self) -> Optional[int]:
        """Port actually bound (resolved when started with port 0)."""
        return self._port

    def is_running(self) -> bool:
        return self._running

    def stats(self) -> Dict[str, int]:
        stats = self._registry.stats()
        stats["open_connections"] = len(self._connections)
        return stats

    @asynccontextmanager
    async def run(self, host: str = "0.0.0.0", port: int = 8080):
        """
        Run the relay as an async context manager.

        Args:
            host: Host to bind to
            port: Port to listen on

        Yields:
            The relay instance
        """
        await self.start(host, port)
        try:
            yield self
        finally:
            await self.stop()

    async def start(self, host: str = "0.0.0.0", port: int = 8080) -> None:
        """
        Start listening for websocket connections.

        Args:
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
        """
        self._server = await websockets.serve(self._handle_connection, host, port)
        self._host = host
        self._port = port
        for sock in self._server.sockets:
            self._port = sock.getsockname()[1]
            break
        self._running = True

        logger.info("Relay server started on ws://%s:%s", host, self._port)

    async def stop(self) -> None:
        """Close every connection and stop listening."""
        self._running = False

        for connection in self._connections.get_all_connections().values():
            connection.close_soon(1001, "Server shutting down")

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        logger.info("Relay server stopped")

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        """Serve one websocket connection from accept to close."""
        connection = WebSocketConnection(websocket, queue_size=self._queue_size)
        connection_id = connection.conn_id

        self._connections.register(connection)
        connection.start()
        self._coordinator.connect(connection_id)
        logger.info("User connected: %s", connection_id)

        try:
            async for raw in websocket:
                if not connection.is_open():
                    # Banned or denied: the close is queued, stop acting on its frames
                    break
                await self.dispatch(connection_id, raw)
        except ConnectionClosed:
            logger.debug("Connection closed for %s", connection_id)
        except Exception as e:
            logger.exception("Error handling connection %s: %s", connection_id, e)
        finally:
            await self._coordinator.disconnect(connection_id)
            self._connections.unregister(connection_id)
            await connection.finish(self._close_timeout)
            logger.info("User disconnected: %s", connection_id)

    async def dispatch(self, connection_id: str, raw) -> None:
        """
        Decode one inbound frame and apply it.

        Malformed frames and invalid payloads are logged and dropped; the
        client never gets an error back.
        """
        try:
            event = Event.deserialize(raw)
        except ProtocolError as e:
            logger.warning("Dropping malformed frame from %s: %s", connection_id, e)
            return

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.debug("Ignoring client-sent %s event from %s", event.type.value, connection_id)
            return

        try:
            await handler(connection_id, event.data)
        except (ValidationError, ProtocolError) as e:
            logger.warning("Dropping invalid %s payload from %s: %s", event.type.value, connection_id, e)

    async def _on_join(self, connection_id: str, data: Any) -> None:
        payload = JoinPayload.model_validate(data)
        await self._coordinator.join(
            connection_id,
            payload.username,
            is_moderator=payload.is_moderator,
            claimed_id=payload.id
        )

    async def _on_message(self, connection_id: str, data: Any) -> None:
        await self._router.relay_message(connection_id, require_object(data, EventType.MESSAGE))

    async def _on_admin_message(self, connection_id: str, data: Any) -> None:
        await self._router.relay_admin_message(connection_id, require_object(data, EventType.ADMIN_MESSAGE))

    async def _on_feature_request(self, connection_id: str, data: Any) -> None:
        payload = FeatureRequestPayload.model_validate(data)
        await self._router.submit_feature_request(connection_id, payload.id, payload.text)

    async def _on_ban_user(self, connection_id: str, data: Any) -> None:
        payload = UserTargetPayload.model_validate(data)
        await self._coordinator.ban(connection_id, payload.user_id)

    async def _on_unban_user(self, connection_id: str, data: Any) -> None:
        payload = UserTargetPayload.model_validate(data)
        await self._coordinator.unban(connection_id, payload.user_id)

    async def _on_delete_feature_request(self, connection_id: str, data: Any) -> None:
        payload = DeleteFeatureRequestPayload.model_validate(data)
        await self._router.delete_feature_request(connection_id, payload.request_id)


def create_server(
    outbound_queue_size: Optional[int] = None,
    registry: Optional[Registry] = None
) -> RelayServer:
    """
    Factory function to create a configured relay server.

    Args:
        outbound_queue_size: Per-connection outbound frame limit
        registry: Pre-built registry to serve

    Returns:
        Configured RelayServer instance
    """
    return RelayServer(registry=registry, outbound_queue_size=outbound_queue_size)


__all__ = [
    'RelayServer',
    'create_server',
]
