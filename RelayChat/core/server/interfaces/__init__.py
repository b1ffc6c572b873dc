"""
Abstract base classes and interfaces for the server module.

The session coordinator and message router only ever talk to a ``Gateway``;
the websocket transport implements it for production and tests substitute an
in-memory recorder.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from RelayChat.core.message.protocol import EventType


@runtime_checkable
class Gateway(Protocol):
    """
    Outbound delivery primitives supplied by the transport.

    All methods are non-blocking: they hand the frame to the transport and
    return immediately, without waiting for the peer.
    """

    @abstractmethod
    def unicast(self, connection_id: str, event: 'EventType', payload: Any) -> bool:
        """
        Deliver an event to exactly one connection.

        Args:
            connection_id: Target connection
            event: Event name
            payload: JSON-compatible payload

        Returns:
            True if the frame was handed to a live connection
        """
        ...

    @abstractmethod
    def broadcast(self, event: 'EventType', payload: Any) -> int:
        """
        Deliver an event to every live connection.

        Returns:
            Number of connections the frame was handed to
        """
        ...

    @abstractmethod
    def terminate(self, connection_id: str, reason: str = "") -> None:
        """
        Close a connection once the frames already handed to it are flushed.

        Args:
            connection_id: Connection to close
            reason: Close reason sent with the close frame
        """
        ...


@runtime_checkable
class TransportConnection(Protocol):
    """Protocol for a single transport-level connection."""

    conn_id: str

    @abstractmethod
    def enqueue(self, frame: str) -> bool:
        """Queue a serialized frame for delivery."""
        ...

    @abstractmethod
    def close_soon(self, code: int = 1000, reason: str = "") -> None:
        """Close after pending frames are delivered."""
        ...

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the connection still accepts frames."""
        ...


class ConnectionRegistry(ABC):
    """Abstract base class for connection registries."""

    @abstractmethod
    def register(self, connection: TransportConnection) -> None:
        """Register a new connection."""
        pass

    @abstractmethod
    def unregister(self, connection_id: str) -> Optional[TransportConnection]:
        """Unregister a connection."""
        pass

    @abstractmethod
    def get_connection(self, connection_id: str) -> Optional[TransportConnection]:
        """Get a connection by identifier."""
        pass

    @abstractmethod
    def get_all_connections(self) -> dict[str, TransportConnection]:
        """Get all registered connections."""
        pass

    @abstractmethod
    def is_connected(self, connection_id: str) -> bool:
        """Check if a connection is registered and open."""
        pass


class ServerLifecycle(ABC):
    """Abstract base class for server lifecycle management."""

    @abstractmethod
    async def start(self, host: str, port: int) -> None:
        """Start the server."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the server."""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Check if server is running."""
        pass


__all__ = [
    'Gateway',
    'TransportConnection',
    'ConnectionRegistry',
    'ServerLifecycle',
]
