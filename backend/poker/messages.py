"""
Inbound Socket.IO message types.

Every client event is parsed into one of the dataclasses below before it
reaches room logic. Parsing checks required fields and their types; it does
not look at room state.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from .rooms import CARD_VALUES

T = TypeVar("T", bound="InboundMessage")

MAX_NAME_LENGTH = 64
# Stories longer than this are refused with an error reply to the sender
MAX_STORY_LENGTH = 10000


class InvalidMessage(ValueError):
    """Raised when a client payload does not match its event's shape."""

    def __init__(self, event: str, message: str):
        super().__init__(message)
        self.event = event
        self.message = message


def _require_text(event: str, data: Dict[str, Any], key: str, max_length: int,
                  allow_empty: bool = False, strip: bool = True) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidMessage(event, f"{key} is required")
    if strip:
        value = value.strip()
    if not value and not allow_empty:
        raise InvalidMessage(event, f"{key} is required")
    if len(value) > max_length:
        raise InvalidMessage(event, f"{key} is too long")
    return value


def _optional_flag(event: str, data: Dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidMessage(event, f"{key} must be a boolean")
    return value


class InboundMessage:
    """Base class; subclasses set ``event`` and implement ``from_dict``."""

    event = ""

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        return cls()


@dataclass(frozen=True)
class CreateRoom(InboundMessage):
    event = "create-room"

    room_name: str
    user_name: str
    is_spectator: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreateRoom":
        return cls(
            room_name=_require_text(cls.event, data, "roomName", MAX_NAME_LENGTH),
            user_name=_require_text(cls.event, data, "userName", MAX_NAME_LENGTH),
            is_spectator=_optional_flag(cls.event, data, "isSpectator"),
        )


@dataclass(frozen=True)
class JoinRoom(InboundMessage):
    event = "join-room"

    room_id: str
    user_name: str
    is_spectator: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JoinRoom":
        return cls(
            room_id=_require_text(cls.event, data, "roomId", MAX_NAME_LENGTH),
            user_name=_require_text(cls.event, data, "userName", MAX_NAME_LENGTH),
            is_spectator=_optional_flag(cls.event, data, "isSpectator"),
        )


@dataclass(frozen=True)
class SetStory(InboundMessage):
    event = "set-story"

    story: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetStory":
        # Kept exactly as sent; an empty story starts a fresh unnamed round
        return cls(story=_require_text(cls.event, data, "story", MAX_STORY_LENGTH,
                                       allow_empty=True, strip=False))


@dataclass(frozen=True)
class CastVote(InboundMessage):
    event = "cast-vote"

    vote: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CastVote":
        vote = data.get("vote")
        if not isinstance(vote, str) or vote not in CARD_VALUES:
            raise InvalidMessage(cls.event, "vote must be one of the card values")
        return cls(vote=vote)


@dataclass(frozen=True)
class RevealVotes(InboundMessage):
    event = "reveal-votes"


@dataclass(frozen=True)
class ClearVotes(InboundMessage):
    event = "clear-votes"


@dataclass(frozen=True)
class LeaveRoom(InboundMessage):
    event = "leave-room"


MESSAGE_TYPES: Dict[str, Type[InboundMessage]] = {
    cls.event: cls
    for cls in (CreateRoom, JoinRoom, SetStory, CastVote, RevealVotes, ClearVotes, LeaveRoom)
}


def parse_message(event: str, payload: Optional[Any]) -> InboundMessage:
    """
    Build the typed message for ``event`` from a raw Socket.IO payload.

    Args:
        event: Socket.IO event name
        payload: Decoded JSON payload; ``None`` is treated as ``{}``

    Returns:
        InboundMessage: the parsed message

    Raises:
        InvalidMessage: unknown event or malformed payload
    """
    message_type = MESSAGE_TYPES.get(event)
    if message_type is None:
        raise InvalidMessage(event, f"Unknown event {event}")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidMessage(event, "Payload must be an object")
    return message_type.from_dict(payload)
