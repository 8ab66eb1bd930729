"""In-memory rooms and the voting round state machine.

Rooms live only in process memory. A ``RoomRegistry`` is created once by the
application factory and owns every ``Room``; connections are identified by
opaque string tokens (the Socket.IO ``sid`` in production, any string in
tests) so nothing here depends on a transport.
"""

import math
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Union


# Fibonacci-like deck plus the "unknown" and "need a break" sentinels
CARD_VALUES: List[str] = ['0', '1', '2', '3', '5', '8', '13', '21', '34', '55', '89', '?', '☕']
UNKNOWN_CARD = '?'
BREAK_CARD = '☕'
NON_NUMERIC_CARDS = frozenset({UNKNOWN_CARD, BREAK_CARD})

# Sent in place of every vote value until the round is revealed
VOTE_MASK = '***'


class PokerError(Exception):
    """Base class for room errors surfaced to a connection."""


class RoomNotFound(PokerError):
    def __init__(self, room_id: str):
        super().__init__('Room not found')
        self.room_id = room_id


class RoundState(str, Enum):
    COLLECTING = 'collecting'
    REVEALED = 'revealed'


@dataclass
class Member:
    id: str
    name: str
    is_spectator: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {'id': self.id, 'name': self.name, 'isSpectator': self.is_spectator}


@dataclass(frozen=True)
class VotingStats:
    average: float
    median: Union[int, float]
    min: int
    max: int
    total_votes: int

    def to_dict(self) -> Dict[str, object]:
        return {
            'average': self.average,
            'median': self.median,
            'min': self.min,
            'max': self.max,
            'totalVotes': self.total_votes,
        }


def _round_one_decimal(value: float) -> float:
    # Halves round up
    return math.floor(value * 10 + 0.5) / 10


def compute_stats(votes: List[str]) -> Optional[VotingStats]:
    """Summarise a round's vote tokens.

    Sentinel cards and anything that does not parse as an integer are left
    out of the numbers, but ``total_votes`` still counts every vote cast.
    Returns ``None`` when no numeric vote remains.
    """
    numeric: List[int] = []
    for token in votes:
        if token in NON_NUMERIC_CARDS:
            continue
        try:
            numeric.append(int(token))
        except (TypeError, ValueError):
            continue
    if not numeric:
        return None

    ordered = sorted(numeric)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        median = (ordered[mid - 1] + ordered[mid]) / 2
        if median == int(median):
            median = int(median)
    else:
        median = ordered[mid]

    return VotingStats(
        average=_round_one_decimal(sum(numeric) / len(numeric)),
        median=median,
        min=ordered[0],
        max=ordered[-1],
        total_votes=len(votes),
    )


class Room:
    def __init__(self, room_id: str, name: str):
        self.id = room_id
        self.name = name
        self.members: 'OrderedDict[str, Member]' = OrderedDict()
        self.current_story = ''
        self.votes: Dict[str, str] = {}
        self.voting_revealed = False
        self.created_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<Room {self.id} {self.name!r} members={len(self.members)}>"

    @property
    def state(self) -> RoundState:
        return RoundState.REVEALED if self.voting_revealed else RoundState.COLLECTING

    def add_member(self, connection: str, name: str, is_spectator: bool = False) -> Member:
        member = self.members.get(connection)
        if member is not None:
            # Rejoining keeps the original seat in join order
            member.name = name
            member.is_spectator = is_spectator
            if is_spectator:
                self.votes.pop(connection, None)
            return member
        member = Member(id=connection, name=name, is_spectator=is_spectator)
        self.members[connection] = member
        return member

    def remove_member(self, connection: str) -> Optional[Member]:
        self.votes.pop(connection, None)
        return self.members.pop(connection, None)

    def is_empty(self) -> bool:
        return not self.members

    def set_story(self, text: str) -> None:
        """Start a new round for ``text``; unrevealed votes are discarded."""
        self.current_story = text
        self.clear_votes()

    def cast_vote(self, connection: str, token: str) -> bool:
        """Record ``token`` for ``connection`` and report whether it was accepted.

        Spectators, non-members and votes arriving after the reveal are
        rejected. A member voting twice in one round keeps the last card.
        """
        member = self.members.get(connection)
        if member is None or member.is_spectator:
            return False
        if self.voting_revealed:
            return False
        self.votes[connection] = token
        return True

    def reveal_votes(self) -> Optional[VotingStats]:
        self.voting_revealed = True
        return self.voting_stats()

    def clear_votes(self) -> None:
        self.votes.clear()
        self.voting_revealed = False

    def voting_stats(self) -> Optional[VotingStats]:
        if not self.voting_revealed:
            return None
        return compute_stats(list(self.votes.values()))

    def public_votes(self) -> Dict[str, str]:
        if self.voting_revealed:
            return dict(self.votes)
        return {connection: VOTE_MASK for connection in self.votes}

    def to_dict(self) -> Dict[str, object]:
        """Snapshot broadcast to members; vote values are masked until reveal."""
        return {
            'id': self.id,
            'name': self.name,
            'users': [m.to_dict() for m in self.members.values()],
            'currentStory': self.current_story,
            'votes': self.public_votes(),
            'votingRevealed': self.voting_revealed,
            'cardValues': list(CARD_VALUES),
        }

    def summary(self) -> Dict[str, object]:
        """Admin view of the room. Never carries vote values."""
        return {
            'id': self.id,
            'name': self.name,
            'memberCount': len(self.members),
            'voteCount': len(self.votes),
            'votingRevealed': self.voting_revealed,
            'createdAt': self.created_at.isoformat(),
        }


@dataclass
class Departure:
    room: Room
    member: Member
    was_last_member: bool


def generate_room_id(length: int = 8) -> str:
    return uuid.uuid4().hex[:length]


class RoomRegistry:
    """Owns all active rooms and the connection -> room index.

    Socket.IO runs handlers on parallel threads. ``lock`` serialises every
    registry and room mutation; a handler holds it across its whole
    mutate-then-snapshot sequence so each broadcast reflects one state.
    The registry methods take it too, so direct callers are safe.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None, id_length: int = 8):
        self._rooms: Dict[str, Room] = {}
        self._by_connection: Dict[str, str] = {}
        self._id_factory = id_factory or (lambda: generate_room_id(id_length))
        self.lock = threading.RLock()

    def __len__(self) -> int:
        with self.lock:
            return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        with self.lock:
            return room_id in self._rooms

    @property
    def size(self) -> int:
        return len(self)

    def rooms(self) -> List[Room]:
        with self.lock:
            return list(self._rooms.values())

    def summaries(self) -> List[Dict[str, object]]:
        with self.lock:
            return [room.summary() for room in self._rooms.values()]

    def member_count(self) -> int:
        with self.lock:
            return len(self._by_connection)

    def get(self, room_id: str) -> Optional[Room]:
        with self.lock:
            return self._rooms.get(room_id)

    def _new_room_id(self) -> str:
        while True:
            room_id = self._id_factory()
            if room_id not in self._rooms:
                return room_id

    def create_room(self, connection: str, creator_name: str, room_name: str,
                    is_spectator: bool = False) -> Room:
        with self.lock:
            self.remove_member(connection)
            room = Room(self._new_room_id(), room_name)
            room.add_member(connection, creator_name, is_spectator)
            self._rooms[room.id] = room
            self._by_connection[connection] = room.id
            return room

    def join_room(self, connection: str, room_id: str, user_name: str,
                  is_spectator: bool = False) -> Room:
        with self.lock:
            room = self._rooms.get(room_id)
            if room is None:
                raise RoomNotFound(room_id)
            # A connection sits in at most one room
            if self._by_connection.get(connection) not in (None, room_id):
                self.remove_member(connection)
            room.add_member(connection, user_name, is_spectator)
            self._by_connection[connection] = room.id
            return room

    def resolve_room(self, connection: str) -> Optional[Room]:
        with self.lock:
            room_id = self._by_connection.get(connection)
            if room_id is None:
                return None
            return self._rooms.get(room_id)

    def remove_member(self, connection: str) -> Optional[Departure]:
        with self.lock:
            room_id = self._by_connection.pop(connection, None)
            room = self._rooms.get(room_id) if room_id is not None else None
            if room is None:
                return None
            member = room.remove_member(connection)
            if member is None:
                return None
            if room.is_empty():
                del self._rooms[room.id]
                return Departure(room=room, member=member, was_last_member=True)
            return Departure(room=room, member=member, was_last_member=False)
