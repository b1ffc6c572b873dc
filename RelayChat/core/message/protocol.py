"""
Wire protocol module for RelayChat.

Every websocket text frame is one JSON object ``{"event": <name>, "data": <payload>}``.
Event names and payload field names keep the camelCase spelling the browser
clients use; the pydantic models below translate them to Python names.
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from RelayChat.core.exceptions import ProtocolError


class EventType(Enum):
    """
    Enumeration of the events exchanged between clients and the relay.
    """
    # client -> server
    JOIN = "join"
    MESSAGE = "message"  # also relayed server -> clients
    ADMIN_MESSAGE = "adminMessage"  # also relayed server -> clients
    FEATURE_REQUEST = "featureRequest"
    BAN_USER = "banUser"
    UNBAN_USER = "unbanUser"
    DELETE_FEATURE_REQUEST = "deleteFeatureRequest"

    # server -> client(s)
    CONNECTION_DENIED = "connectionDenied"
    BANNED_USERS_LIST = "bannedUsersList"
    FEATURE_REQUESTS_LIST = "featureRequestsList"
    USER_LIST = "userList"


# Older web clients announce themselves with ``userJoined``
EVENT_ALIASES: Dict[str, EventType] = {
    "userJoined": EventType.JOIN,
}


def resolve_event_type(name: Any) -> EventType:
    """
    Map a wire event name to an EventType.

    Raises:
        ProtocolError: If the name is not a known event
    """
    if not isinstance(name, str):
        raise ProtocolError(f"Event name must be a string, got {type(name).__name__}")
    if name in EVENT_ALIASES:
        return EVENT_ALIASES[name]
    try:
        return EventType(name)
    except ValueError:
        raise ProtocolError(f"Unknown event: {name!r}") from None


def _reject_constant(name: str) -> float:
    # NaN and Infinity are not JSON; relaying them would break strict client parsers
    raise ValueError(f"{name} is not allowed")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} overflows a float")
    return value


@dataclass
class Event:
    """
    A single frame on the wire.

    Attributes:
        type (EventType): Event name
        data: JSON-compatible payload
    """
    type: EventType
    data: Any = None

    def serialize(self) -> str:
        """
        Serialize the event to a JSON text frame.

        Returns:
            str: JSON representation of the event
        """
        return json.dumps({
            "event": self.type.value,
            "data": self.data,
        })

    @classmethod
    def deserialize(cls, raw) -> 'Event':
        """
        Create an Event from a received frame.

        Args:
            raw: Text (or UTF-8 bytes) frame

        Returns:
            Event: Decoded event

        Raises:
            ProtocolError: If the frame is not a well-formed event object
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ProtocolError(f"Frame is not valid UTF-8: {e}") from e

        try:
            obj = json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Frame is not valid JSON: {e}") from e
        except RecursionError as e:
            raise ProtocolError("Frame is nested too deeply") from e

        if not isinstance(obj, dict) or "event" not in obj:
            raise ProtocolError("Frame must be an object with an 'event' field")

        return cls(type=resolve_event_type(obj["event"]), data=obj.get("data"))


def _coerce_identifier(value: Any) -> Any:
    # Browser clients often generate numeric ids (Date.now()); identifiers are opaque strings here
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


Identifier = Annotated[str, BeforeValidator(_coerce_identifier)]


class JoinPayload(BaseModel):
    """Identity announced by a client; ``id`` is a prior identifier checked against bans."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[Identifier] = None
    username: str
    is_moderator: bool = Field(default=False, alias="isModerator")


class FeatureRequestPayload(BaseModel):
    id: Identifier
    text: str


class UserTargetPayload(BaseModel):
    """Payload of ``banUser`` / ``unbanUser``."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: Identifier = Field(alias="userId")


class DeleteFeatureRequestPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: Identifier = Field(alias="requestId")


def require_object(data: Any, event_type: EventType) -> Dict[str, Any]:
    """
    Check that a payload relayed verbatim is a JSON object.

    Raises:
        ProtocolError: If the payload is not an object
    """
    if not isinstance(data, dict):
        raise ProtocolError(f"{event_type.value} payload must be an object")
    return data


__all__ = [
    'EventType',
    'EVENT_ALIASES',
    'Event',
    'resolve_event_type',
    'JoinPayload',
    'FeatureRequestPayload',
    'UserTargetPayload',
    'DeleteFeatureRequestPayload',
    'require_object',
]
