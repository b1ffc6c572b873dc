"""
Test configuration and fixtures for RelayChat tests.

Provides:
- RecordingGateway: in-memory Gateway capturing every delivery
- Registry / coordinator / router fixtures wired to the recorder
- A live relay server on a free port for integration tests
"""

import asyncio
import copy
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

import pytest
import pytest_asyncio
import websockets

from RelayChat.core.logging import configure_logging, create_testing_config
from RelayChat.core.message.protocol import EventType
from RelayChat.core.server.registry import Registry
from RelayChat.core.server.relay_server import RelayServer
from RelayChat.core.server.routing import MessageRouter
from RelayChat.core.server.session import SessionCoordinator

BROADCAST = "*"


@dataclass
class Delivery:
    """One frame handed to the gateway."""
    target: str  # connection id, or BROADCAST
    event: EventType
    payload: Any


@dataclass
class RecordingGateway:
    """Gateway that records deliveries instead of sending them."""
    deliveries: List[Delivery] = field(default_factory=list)
    terminated: List[str] = field(default_factory=list)

    def unicast(self, connection_id: str, event: EventType, payload: Any) -> bool:
        self.deliveries.append(Delivery(connection_id, event, copy.deepcopy(payload)))
        return True

    def broadcast(self, event: EventType, payload: Any) -> int:
        self.deliveries.append(Delivery(BROADCAST, event, copy.deepcopy(payload)))
        return 1

    def terminate(self, connection_id: str, reason: str = "") -> None:
        self.terminated.append(connection_id)

    def broadcasts(self, event: Optional[EventType] = None) -> List[Delivery]:
        return [d for d in self.deliveries
                if d.target == BROADCAST and (event is None or d.event == event)]

    def unicasts(self, connection_id: str, event: Optional[EventType] = None) -> List[Delivery]:
        return [d for d in self.deliveries
                if d.target == connection_id and (event is None or d.event == event)]

    def last_broadcast(self, event: EventType) -> Any:
        matches = self.broadcasts(event)
        assert matches, f"no {event.value} broadcast recorded"
        return matches[-1].payload

    def clear(self) -> None:
        self.deliveries.clear()
        self.terminated.clear()


@pytest.fixture(scope="session", autouse=True)
def _testing_logging():
    """Log to the console only while testing."""
    configure_logging(create_testing_config())


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def coordinator(registry: Registry, gateway: RecordingGateway) -> SessionCoordinator:
    return SessionCoordinator(registry, gateway)


@pytest.fixture
def router(registry: Registry, gateway: RecordingGateway) -> MessageRouter:
    return MessageRouter(registry, gateway)


async def join(coordinator: SessionCoordinator, connection_id: str, username: str,
               is_moderator: bool = False, claimed_id: Optional[str] = None) -> bool:
    """Open and join a connection in one step."""
    coordinator.connect(connection_id)
    return await coordinator.join(connection_id, username, is_moderator=is_moderator,
                                  claimed_id=claimed_id)


@pytest_asyncio.fixture
async def relay_server():
    """Run a real relay on a free local port."""
    relay = RelayServer(close_timeout=1.0)
    async with relay.run("127.0.0.1", 0):
        yield relay


class RelayClient:
    """Thin websocket client speaking the relay's event frames."""

    def __init__(self, websocket):
        self.websocket = websocket

    async def emit(self, event: str, data: Any = None) -> None:
        await self.websocket.send(json.dumps({"event": event, "data": data}))

    async def expect(self, event: str, timeout: float = 2.0) -> Any:
        """Read frames until ``event`` arrives and return its payload."""
        async def _wait():
            while True:
                frame = json.loads(await self.websocket.recv())
                if frame["event"] == event:
                    return frame["data"]
        return await asyncio.wait_for(_wait(), timeout)

    async def expect_none(self, event: str, timeout: float = 0.3) -> None:
        """Assert that ``event`` does not arrive within ``timeout``."""
        try:
            payload = await self.expect(event, timeout)
        except asyncio.TimeoutError:
            return
        raise AssertionError(f"unexpected {event}: {payload!r}")

    async def close(self) -> None:
        await self.websocket.close()


@pytest_asyncio.fixture
async def connect(relay_server: RelayServer):
    """Factory opening RelayClient connections to the running relay."""
    clients: List[RelayClient] = []

    async def _connect() -> RelayClient:
        websocket = await websockets.connect(f"ws://127.0.0.1:{relay_server.port}")
        client = RelayClient(websocket)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
