"""
In-memory registry of connected users, banned users and feature requests.

The registry is the only owner of the three collections. It performs no
locking of its own: callers that need a read-check-mutate sequence to be
atomic hold ``Registry.lock`` for the whole sequence.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from RelayChat.core.exceptions import (
    BannedError,
    DuplicateFeatureRequestError,
    DuplicateUserError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """
    A joined participant.

    Attributes:
        id: Connection identifier assigned by the transport
        username: Display name chosen by the client (not unique)
        is_moderator: Moderator flag asserted by the client at join time
    """
    id: str
    username: str
    is_moderator: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "isModerator": self.is_moderator}


@dataclass(frozen=True)
class BannedUser:
    """Identifier and display name of a user, copied at the moment of the ban."""
    id: str
    username: str

    @classmethod
    def snapshot(cls, user: User) -> 'BannedUser':
        return cls(id=user.id, username=user.username)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username}


@dataclass(frozen=True)
class FeatureRequest:
    """
    A feature request submitted by a joined user.

    Attributes:
        id: Client-supplied opaque identifier
        text: Request text
        username: Display name of the submitter, taken from the registry
    """
    id: str
    text: str
    username: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "username": self.username}


class Registry:
    """
    Authoritative store for the relay's shared state.

    Listings are returned as copies in insertion order, so callers may
    iterate them while the registry keeps changing.
    """

    def __init__(self):
        # dicts keep insertion order, which is the order clients see
        self._users: Dict[str, User] = {}
        self._banned: List[BannedUser] = []
        self._feature_requests: List[FeatureRequest] = []
        self.lock = asyncio.Lock()

    # -- connected users -------------------------------------------------

    def add_user(self, user: User, claimed_id: Optional[str] = None) -> User:
        """
        Register a joined user.

        Args:
            user: User keyed by its connection identifier
            claimed_id: Prior identifier presented by the client, checked
                against the ban list (defaults to the user's own id)

        Returns:
            The registered user

        Raises:
            BannedError: If the presented identifier is banned
            DuplicateUserError: If the connection already has a user record
        """
        banned_id = claimed_id if claimed_id is not None else user.id
        if self.is_banned(banned_id):
            raise BannedError(banned_id, connection_id=user.id)
        if user.id in self._users:
            raise DuplicateUserError("Connection already joined", connection_id=user.id)

        self._users[user.id] = user
        logger.debug("Registered user %s (%s), %d connected", user.username, user.id, len(self._users))
        return user

    def remove_user(self, user_id: str) -> Optional[User]:
        """Remove a user; returns the removed record or None if absent."""
        return self._users.pop(user_id, None)

    def find_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def require_user(self, user_id: str) -> User:
        """
        Look up a joined user.

        Raises:
            NotFoundError: If no user is registered for the identifier
        """
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("Connection has not joined", connection_id=user_id)
        return user

    def require_moderator(self, user_id: str) -> User:
        """
        Look up a joined user holding the moderator flag.

        Evaluated on every call; moderator status is never cached.

        Raises:
            UnauthorizedError: If the connection is not a joined moderator
        """
        user = self._users.get(user_id)
        if user is None or not user.is_moderator:
            raise UnauthorizedError("Moderator rights required", connection_id=user_id)
        return user

    def list_users(self) -> List[User]:
        return list(self._users.values())

    # -- bans ------------------------------------------------------------

    def ban_user(self, user: User) -> BannedUser:
        """Record a snapshot of the user on the ban list and drop it from the connected set."""
        entry = BannedUser.snapshot(user)
        self._banned.append(entry)
        self._users.pop(user.id, None)
        return entry

    def unban_user(self, user_id: str) -> Optional[BannedUser]:
        """Remove the first ban entry matching the identifier; None if absent."""
        for index, entry in enumerate(self._banned):
            if entry.id == user_id:
                return self._banned.pop(index)
        return None

    def is_banned(self, user_id: Optional[str]) -> bool:
        if user_id is None:
            return False
        return any(entry.id == user_id for entry in self._banned)

    def list_banned(self) -> List[BannedUser]:
        return list(self._banned)

    # -- feature requests ------------------------------------------------

    def add_feature_request(self, request: FeatureRequest) -> FeatureRequest:
        """
        Append a feature request.

        Raises:
            DuplicateFeatureRequestError: If the identifier is already stored
        """
        if any(existing.id == request.id for existing in self._feature_requests):
            raise DuplicateFeatureRequestError(request.id)
        self._feature_requests.append(request)
        return request

    def remove_feature_request(self, request_id: str) -> Optional[FeatureRequest]:
        """Remove the first request matching the identifier; None if absent."""
        for index, request in enumerate(self._feature_requests):
            if request.id == request_id:
                return self._feature_requests.pop(index)
        return None

    def list_feature_requests(self) -> List[FeatureRequest]:
        return list(self._feature_requests)

    # -- wire views ------------------------------------------------------

    def user_list_payload(self) -> List[Dict[str, Any]]:
        return [user.to_dict() for user in self._users.values()]

    def banned_list_payload(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._banned]

    def feature_requests_payload(self) -> List[Dict[str, Any]]:
        return [request.to_dict() for request in self._feature_requests]

    def stats(self) -> Dict[str, int]:
        return {
            "connected_users": len(self._users),
            "banned_users": len(self._banned),
            "feature_requests": len(self._feature_requests),
        }

    def __len__(self) -> int:
        """Return number of connected users."""
        return len(self._users)

    def __contains__(self, user_id: str) -> bool:
        """Check if a connection has a user record."""
        return user_id in self._users


__all__ = [
    'User',
    'BannedUser',
    'FeatureRequest',
    'Registry',
]
