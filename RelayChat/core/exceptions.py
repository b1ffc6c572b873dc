"""
Exception classes for the relay core.

Registry operations raise these; the session coordinator and message router
catch them at their boundary and turn them into the observable behavior
clients rely on (a ``connectionDenied`` notice or a silent no-op).
"""


class RelayChatError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str, connection_id: str = None):
        """
        Initialize relay error.

        Args:
            message: Error message
            connection_id: Connection the error relates to, if any
        """
        self.connection_id = connection_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.connection_id:
            return f"[{self.connection_id}] {super().__str__()}"
        return super().__str__()


class BannedError(RelayChatError):
    """Raised when a banned identity tries to join."""

    def __init__(self, banned_id: str, connection_id: str = None):
        self.banned_id = banned_id
        super().__init__(f"Identity {banned_id} is banned", connection_id)


class UnauthorizedError(RelayChatError):
    """Raised when a non-moderator attempts a moderator action."""
    pass


class NotFoundError(RelayChatError):
    """Raised when the target of an action does not exist."""
    pass


class DuplicateUserError(RelayChatError):
    """Raised when a connection registers a second user record."""
    pass


class DuplicateFeatureRequestError(RelayChatError):
    """Raised when a feature request reuses an identifier already stored."""

    def __init__(self, request_id: str, connection_id: str = None):
        self.request_id = request_id
        super().__init__(f"Feature request {request_id} already exists", connection_id)


class ProtocolError(RelayChatError):
    """Raised when an inbound frame cannot be decoded."""
    pass
