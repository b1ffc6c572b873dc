"""
Server module for RelayChat.

Architecture Overview:
---------------------

1. **Registry** (`registry/`)
   - Registry: connected users, ban list and feature requests, plus the
     lock that serializes every state change
   - User, BannedUser, FeatureRequest: records and their wire form

2. **Session Coordination** (`session/`)
   - SessionCoordinator: join, disconnect, ban and unban
   - ConnectionState: per-connection lifecycle

3. **Message Routing** (`routing/`)
   - MessageRouter: chat, admin and feature-request events

4. **Interfaces** (`interfaces/`)
   - Gateway: unicast / broadcast / terminate contract used by the core

5. **Transport Layer** (`transport/`)
   - WebSocketConnection: per-connection outbound queue and writer task
   - WebSocketConnectionRegistry: live connections by identifier
   - WebSocketGateway: Gateway over the websocket connections

6. **Relay Server** (`relay_server.py`)
   - RelayServer: accepts connections and dispatches inbound events

Usage:
    from RelayChat.core.server import RelayServer

    relay = RelayServer()
    async with relay.run("0.0.0.0", 8080):
        await asyncio.Future()
"""

from RelayChat.core.server.interfaces import (
    Gateway,
    TransportConnection,
    ConnectionRegistry,
    ServerLifecycle,
)
from RelayChat.core.server.registry import (
    User,
    BannedUser,
    FeatureRequest,
    Registry,
)
from RelayChat.core.server.relay_server import RelayServer, create_server
from RelayChat.core.server.routing import MessageRouter
from RelayChat.core.server.session import ConnectionState, SessionCoordinator
from RelayChat.core.server.transport import (
    WebSocketConnection,
    WebSocketConnectionRegistry,
    WebSocketGateway,
)

__all__ = [
    'Gateway',
    'TransportConnection',
    'ConnectionRegistry',
    'ServerLifecycle',

    'User',
    'BannedUser',
    'FeatureRequest',
    'Registry',

    'ConnectionState',
    'SessionCoordinator',

    'MessageRouter',

    'WebSocketConnection',
    'WebSocketConnectionRegistry',
    'WebSocketGateway',

    'RelayServer',
    'create_server',
]
