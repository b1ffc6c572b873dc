"""
Message routing for chat, admin and feature-request events.

Chat messages are relayed verbatim to everyone; the claimed username in the
payload is not checked against the sender's registered name. Admin messages
and feature-request deletion require a moderator; feature requests require
a joined sender and always carry the registered username.
"""

import logging
from typing import Any, Dict

from RelayChat.core.exceptions import (
    DuplicateFeatureRequestError,
    NotFoundError,
    UnauthorizedError,
)
from RelayChat.core.message.protocol import EventType
from RelayChat.core.server.interfaces import Gateway
from RelayChat.core.server.registry import FeatureRequest, Registry

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Validates and relays message events.

    Shares ``Registry.lock`` with the session coordinator so relayed frames
    and state broadcasts reach every client in the same order.
    """

    def __init__(self, registry: Registry, gateway: Gateway):
        """
        Initialize message router.

        Args:
            registry: Shared state store
            gateway: Outbound delivery primitives
        """
        self._registry = registry
        self._gateway = gateway

    async def relay_message(self, sender_id: str, message: Dict[str, Any]) -> bool:
        """Broadcast a chat message exactly as received."""
        async with self._registry.lock:
            logger.info("Message from %s: %s", message.get("username"), message.get("text"))
            self._gateway.broadcast(EventType.MESSAGE, message)
            return True

    async def relay_admin_message(self, sender_id: str, message: Dict[str, Any]) -> bool:
        """
        Broadcast an admin message if the sender is a joined moderator.

        Returns:
            True if the message was broadcast
        """
        async with self._registry.lock:
            try:
                self._registry.require_moderator(sender_id)
            except UnauthorizedError as e:
                logger.warning("Dropped adminMessage: %s", e)
                return False

            logger.info("Admin Message from %s: %s", message.get("username"), message.get("text"))
            self._gateway.broadcast(EventType.ADMIN_MESSAGE, message)
            return True

    async def submit_feature_request(self, sender_id: str, request_id: str, text: str) -> bool:
        """
        Store a feature request under the sender's registered username.

        Returns:
            True if the request was stored and the list broadcast
        """
        async with self._registry.lock:
            try:
                user = self._registry.require_user(sender_id)
            except NotFoundError as e:
                logger.debug("Dropped featureRequest: %s", e)
                return False

            request = FeatureRequest(id=request_id, text=text, username=user.username)
            try:
                self._registry.add_feature_request(request)
            except DuplicateFeatureRequestError as e:
                logger.warning("Dropped featureRequest from %s: %s", user.username, e)
                return False

            logger.info("New feature request from %s: %s", user.username, text)
            self._gateway.broadcast(EventType.FEATURE_REQUESTS_LIST,
                                    self._registry.feature_requests_payload())
            return True

    async def delete_feature_request(self, acting_id: str, request_id: str) -> bool:
        """
        Delete a feature request on a moderator's behalf.

        Returns:
            True if a request was removed and the list broadcast
        """
        async with self._registry.lock:
            try:
                moderator = self._registry.require_moderator(acting_id)
            except UnauthorizedError as e:
                logger.warning("Ignored deleteFeatureRequest: %s", e)
                return False

            if self._registry.remove_feature_request(request_id) is None:
                logger.debug("deleteFeatureRequest from %s: no request %s", moderator.username, request_id)
                return False

            logger.info("Feature request %s deleted by %s", request_id, moderator.username)
            self._gateway.broadcast(EventType.FEATURE_REQUESTS_LIST,
                                    self._registry.feature_requests_payload())
            return True


__all__ = [
    'MessageRouter',
]
