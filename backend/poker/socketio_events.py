from flask_socketio import join_room, leave_room, emit
from flask import request, current_app
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from poker.audit import AuditLogger
from poker.messages import (
    InboundMessage, InvalidMessage, parse_message,
    CreateRoom, JoinRoom, SetStory, CastVote, RevealVotes, ClearVotes, LeaveRoom,
)
from poker.rooms import Room, RoomNotFound, RoomRegistry

logger = logging.getLogger(__name__)

# (event, payload, emit kwargs) built under the registry lock, sent after it
Outbound = Tuple[str, Dict[str, Any], Dict[str, Any]]
# (action, user_name, room_id, details) written to the audit log last
AuditEntry = Tuple[str, Optional[str], Optional[str], Optional[Dict[str, Any]]]


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _client_info() -> Dict[str, Optional[str]]:
    """IP and user agent of the Socket.IO handshake, for the audit log."""
    try:
        forwarded = request.headers.get('X-Forwarded-For')
        ip = forwarded.split(',')[0].strip() if forwarded else request.remote_addr
        return {'ip': ip, 'user_agent': request.headers.get('User-Agent')}
    except RuntimeError:
        return {'ip': None, 'user_agent': None}


class RoomEvents:
    """Socket.IO handlers for room membership and the voting round.

    Each handler parses its payload, then, holding the registry lock,
    mutates rooms and builds every outgoing payload. Broadcasts go out after
    the lock is released and the audit log is written last.
    """

    def __init__(self, registry: RoomRegistry, audit: AuditLogger):
        self.registry = registry
        self.audit = audit

    # ---- helpers ----

    def _parse(self, event: str, data: Any, reply_errors: bool = False) -> Optional[InboundMessage]:
        try:
            return parse_message(event, data)
        except InvalidMessage as exc:
            current_app.logger.warning(f"[invalid-payload] sid={_get_sid()} event={event} error={exc.message}")
            if reply_errors:
                emit('error', {'message': exc.message})
            return None

    def _log(self, action: str, user_name: Optional[str] = None, room_id: Optional[str] = None,
             details: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.audit.log_action(action, user_name=user_name, room_id=room_id, details=details,
                                  **_client_info())
        except Exception:
            logger.exception("[audit-failed] action=%s room=%s", action, room_id)

    def _flush(self, outbox: List[Outbound], audit: List[AuditEntry]) -> None:
        for event, payload, kwargs in outbox:
            emit(event, payload, **kwargs)
        for action, user_name, room_id, details in audit:
            self._log(action, user_name, room_id, details)

    def _acting_room(self, event: str) -> Optional[Room]:
        room = self.registry.resolve_room(_get_sid())
        if room is None:
            current_app.logger.debug(f"[ignored] sid={_get_sid()} event={event} no room")
        return room

    def _member_name(self, room: Room) -> Optional[str]:
        member = room.members.get(_get_sid())
        return member.name if member else None

    def _depart(self, reason: str, outbox: List[Outbound], audit: List[AuditEntry]) -> None:
        """Remove the acting connection from its room. Caller holds the lock."""
        sid = _get_sid()
        departure = self.registry.remove_member(sid)
        if departure is None:
            return
        room = departure.room
        leave_room(room.id)
        if departure.was_last_member:
            current_app.logger.info(f"[room-deleted] room={room.id} no users remaining")
        else:
            outbox.append(('user-left', {
                'userId': sid,
                'userName': departure.member.name,
                'room': room.to_dict(),
            }, {'to': room.id}))
        audit.append(('leave_room', departure.member.name, room.id,
                      {'reason': reason, 'roomDeleted': departure.was_last_member}))

    # ---- handlers ----

    def on_connect(self, auth=None):
        current_app.logger.info(f"[connect] sid={_get_sid()}")

    def on_disconnect(self, reason=None):
        outbox, audit = [], []
        with self.registry.lock:
            self._depart('disconnect', outbox, audit)
        self._flush(outbox, audit)
        current_app.logger.info(f"[disconnect] sid={_get_sid()}")

    def on_create_room(self, data=None):
        msg = self._parse(CreateRoom.event, data, reply_errors=True)
        if msg is None:
            return
        outbox, audit = [], []
        with self.registry.lock:
            if self.registry.resolve_room(_get_sid()) is not None:
                self._depart('create-room', outbox, audit)
            room = self.registry.create_room(_get_sid(), msg.user_name, msg.room_name, msg.is_spectator)
            join_room(room.id)
            outbox.append(('room-created', {'roomId': room.id, 'room': room.to_dict()}, {}))
            audit.append(('create_room', msg.user_name, room.id, {'roomName': room.name}))
        self._flush(outbox, audit)
        current_app.logger.info(f"[room-created] room={room.id} user={msg.user_name}")

    def on_join_room(self, data=None):
        msg = self._parse(JoinRoom.event, data, reply_errors=True)
        if msg is None:
            return
        sid = _get_sid()
        outbox, audit = [], []
        with self.registry.lock:
            current = self.registry.resolve_room(sid)
            if current is not None and current.id != msg.room_id and msg.room_id in self.registry:
                self._depart('join-room', outbox, audit)
            try:
                room = self.registry.join_room(sid, msg.room_id, msg.user_name, msg.is_spectator)
            except RoomNotFound as exc:
                room = None
                outbox.append(('error', {'message': str(exc)}, {}))
                audit.append(('join_room_failed', msg.user_name, msg.room_id, {'error': str(exc)}))
            else:
                join_room(room.id)
                snapshot = room.to_dict()
                outbox.append(('room-joined', {'room': snapshot}, {}))
                outbox.append(('user-joined', {
                    'user': room.members[sid].to_dict(),
                    'room': snapshot,
                }, {'to': room.id, 'include_self': False}))
                audit.append(('join_room', msg.user_name, room.id, {'isSpectator': msg.is_spectator}))
        self._flush(outbox, audit)
        if room is None:
            current_app.logger.info(f"[join-failed] room={msg.room_id} user={msg.user_name}")
        else:
            current_app.logger.info(f"[room-joined] room={room.id} user={msg.user_name}")

    def on_leave_room(self, data=None):
        if self._parse(LeaveRoom.event, data) is None:
            return
        outbox, audit = [], []
        with self.registry.lock:
            self._depart('leave-room', outbox, audit)
        self._flush(outbox, audit)

    def on_set_story(self, data=None):
        msg = self._parse(SetStory.event, data, reply_errors=True)
        if msg is None:
            return
        outbox, audit = [], []
        with self.registry.lock:
            room = self._acting_room(SetStory.event)
            if room is None:
                return
            room.set_story(msg.story)
            outbox.append(('story-updated', {'story': room.current_story, 'room': room.to_dict()},
                           {'to': room.id}))
            audit.append(('set_story', self._member_name(room), room.id, {'story': room.current_story}))
        self._flush(outbox, audit)

    def on_cast_vote(self, data=None):
        msg = self._parse(CastVote.event, data)
        if msg is None:
            return
        sid = _get_sid()
        outbox, audit = [], []
        with self.registry.lock:
            room = self._acting_room(CastVote.event)
            if room is None:
                return
            if not room.cast_vote(sid, msg.vote):
                current_app.logger.debug(f"[vote-rejected] sid={sid} room={room.id} state={room.state.value}")
                return
            outbox.append(('vote-cast', {'userId': sid, 'hasVoted': True, 'room': room.to_dict()},
                           {'to': room.id}))
            # The card itself stays out of the log until the round is revealed
            audit.append(('cast_vote', self._member_name(room), room.id, {'story': room.current_story}))
        self._flush(outbox, audit)

    def on_reveal_votes(self, data=None):
        if self._parse(RevealVotes.event, data) is None:
            return
        outbox, audit = [], []
        with self.registry.lock:
            room = self._acting_room(RevealVotes.event)
            if room is None:
                return
            stats = room.reveal_votes()
            stats_payload = stats.to_dict() if stats else None
            outbox.append(('votes-revealed', {'room': room.to_dict(), 'stats': stats_payload},
                           {'to': room.id}))
            audit.append(('reveal_votes', self._member_name(room), room.id,
                          {'story': room.current_story, 'votes': len(room.votes), 'stats': stats_payload}))
        self._flush(outbox, audit)

    def on_clear_votes(self, data=None):
        if self._parse(ClearVotes.event, data) is None:
            return
        outbox, audit = [], []
        with self.registry.lock:
            room = self._acting_room(ClearVotes.event)
            if room is None:
                return
            room.clear_votes()
            outbox.append(('votes-cleared', {'room': room.to_dict()}, {'to': room.id}))
            audit.append(('clear_votes', self._member_name(room), room.id, None))
        self._flush(outbox, audit)

    def handlers(self) -> Dict[str, Callable]:
        return {
            'connect': self.on_connect,
            'disconnect': self.on_disconnect,
            'create-room': self.on_create_room,
            'join-room': self.on_join_room,
            'leave-room': self.on_leave_room,
            'set-story': self.on_set_story,
            'cast-vote': self.on_cast_vote,
            'reveal-votes': self.on_reveal_votes,
            'clear-votes': self.on_clear_votes,
        }


def register_socketio_handlers(socketio, registry: RoomRegistry, audit: AuditLogger,
                               namespace: str = '/') -> RoomEvents:
    """Register the room event handlers on ``namespace`` and return the dispatcher."""
    events = RoomEvents(registry, audit)
    for name, handler in events.handlers().items():
        socketio.on_event(name, handler, namespace=namespace)
    return events
