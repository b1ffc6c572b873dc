"""
Session coordination for the relay.

Applies connection lifecycle events (join, disconnect, ban, unban) to the
registry and fans the resulting state out through the gateway. Each
connection moves through::

    UNJOINED -> JOINED -> DISCONNECTED
                       -> BANNED

Every operation holds ``Registry.lock`` from its first check to its last
delivery, so no observer sees a half-applied ban or join.
"""

import logging
from enum import Enum, auto
from typing import Dict, Optional

from RelayChat.core.exceptions import BannedError, DuplicateUserError, UnauthorizedError
from RelayChat.core.message.protocol import EventType
from RelayChat.core.server.interfaces import Gateway
from RelayChat.core.server.registry import Registry, User

logger = logging.getLogger(__name__)

BANNED_ON_JOIN_REASON = "You are banned from this chat."
BANNED_BY_MODERATOR_REASON = "You have been banned by a moderator."


class ConnectionState(Enum):
    """Lifecycle state of one connection."""
    UNJOINED = auto()
    JOINED = auto()
    DISCONNECTED = auto()
    BANNED = auto()


class SessionCoordinator:
    """
    Validates and applies connection lifecycle events.

    Moderator-only actions requested by anyone else are ignored without a
    reply to the client; they are logged as warnings for auditing.
    """

    def __init__(self, registry: Registry, gateway: Gateway):
        """
        Initialize the coordinator.

        Args:
            registry: Shared state store
            gateway: Outbound delivery primitives
        """
        self._registry = registry
        self._gateway = gateway
        self._states: Dict[str, ConnectionState] = {}

    def connect(self, connection_id: str) -> None:
        """Track a connection the gateway has just accepted."""
        self._states[connection_id] = ConnectionState.UNJOINED
        logger.debug("Connection %s opened", connection_id)

    def state_of(self, connection_id: str) -> Optional[ConnectionState]:
        """Get the lifecycle state, or None for connections not (or no longer) tracked."""
        return self._states.get(connection_id)

    def is_moderator(self, connection_id: str) -> bool:
        user = self._registry.find_user(connection_id)
        return bool(user and user.is_moderator)

    async def join(
        self,
        connection_id: str,
        username: str,
        is_moderator: bool = False,
        claimed_id: Optional[str] = None
    ) -> bool:
        """
        Register the identity announced by a connection.

        Args:
            connection_id: Connection announcing itself
            username: Display name
            is_moderator: Client-asserted moderator flag
            claimed_id: Prior identifier tested against the ban list

        Returns:
            True if the connection is now joined
        """
        async with self._registry.lock:
            state = self._states.get(connection_id)
            if state is not ConnectionState.UNJOINED:
                logger.debug("Ignoring join from %s in state %s", connection_id, state)
                return False

            user = User(id=connection_id, username=username, is_moderator=is_moderator)
            try:
                self._registry.add_user(user, claimed_id=claimed_id)
            except BannedError as e:
                logger.info("Denied join for %s as %s: %s", connection_id, username, e)
                self._gateway.unicast(
                    connection_id,
                    EventType.CONNECTION_DENIED,
                    {"reason": BANNED_ON_JOIN_REASON}
                )
                self._gateway.terminate(connection_id, "banned")
                return False
            except DuplicateUserError as e:
                logger.warning("Ignoring join: %s", e)
                return False

            self._states[connection_id] = ConnectionState.JOINED
            logger.info("%s has joined the chat (%s%s).", username, connection_id,
                        ", moderator" if is_moderator else "")

            self._gateway.unicast(connection_id, EventType.BANNED_USERS_LIST,
                                  self._registry.banned_list_payload())
            self._gateway.unicast(connection_id, EventType.FEATURE_REQUESTS_LIST,
                                  self._registry.feature_requests_payload())
            self._gateway.broadcast(EventType.USER_LIST, self._registry.user_list_payload())
            return True

    async def disconnect(self, connection_id: str) -> bool:
        """
        Handle a connection reported closed by the gateway.

        Returns:
            True if a joined user was removed
        """
        async with self._registry.lock:
            # The gateway reports each connection once; its state is released here.
            state = self._states.pop(connection_id, None)
            if state is not ConnectionState.JOINED:
                logger.debug("Connection %s closed in state %s", connection_id, state)
                return False

            user = self._registry.remove_user(connection_id)
            logger.info("%s disconnected.", user.username if user else connection_id)
            self._gateway.broadcast(EventType.USER_LIST, self._registry.user_list_payload())
            return True

    async def ban(self, acting_id: str, target_id: str) -> bool:
        """
        Ban a connected user and force its connection closed.

        Returns:
            True if a user was banned
        """
        async with self._registry.lock:
            moderator = self._require_moderator(acting_id, "banUser")
            if moderator is None:
                return False

            target = self._registry.find_user(target_id)
            if target is None:
                logger.debug("banUser from %s: no connected user %s", moderator.username, target_id)
                return False

            self._registry.ban_user(target)
            self._states[target.id] = ConnectionState.BANNED
            self._gateway.unicast(
                target.id,
                EventType.CONNECTION_DENIED,
                {"reason": BANNED_BY_MODERATOR_REASON}
            )
            self._gateway.terminate(target.id, "banned")

            logger.info("%s banned user: %s (%s)", moderator.username, target.username, target.id)
            self._gateway.broadcast(EventType.USER_LIST, self._registry.user_list_payload())
            self._gateway.broadcast(EventType.BANNED_USERS_LIST, self._registry.banned_list_payload())
            return True

    async def unban(self, acting_id: str, target_id: str) -> bool:
        """
        Lift a ban.

        Returns:
            True if a ban entry was removed
        """
        async with self._registry.lock:
            moderator = self._require_moderator(acting_id, "unbanUser")
            if moderator is None:
                return False

            entry = self._registry.unban_user(target_id)
            if entry is None:
                logger.debug("unbanUser from %s: %s is not banned", moderator.username, target_id)
                return False

            logger.info("%s unbanned user: %s (%s)", moderator.username, entry.username, entry.id)
            self._gateway.broadcast(EventType.BANNED_USERS_LIST, self._registry.banned_list_payload())
            return True

    def _require_moderator(self, acting_id: str, action: str) -> Optional[User]:
        try:
            return self._registry.require_moderator(acting_id)
        except UnauthorizedError as e:
            logger.warning("Ignored %s: %s", action, e)
            return None

    @property
    def tracked_connections(self) -> int:
        return len(self._states)


__all__ = [
    'ConnectionState',
    'SessionCoordinator',
    'BANNED_ON_JOIN_REASON',
    'BANNED_BY_MODERATOR_REASON',
]
