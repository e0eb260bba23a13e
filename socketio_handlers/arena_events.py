import functools
import logging
from typing import Dict, List, Optional

from flask import request
from flask_socketio import join_room, leave_room

from model.arena_config import ArenaSettings
from model.errors import ArenaError, ProtocolViolation

from .arena_protocol import EventName, Outbound, error_event, parse_intent
from .arena_registry import RoomRegistry
from .arena_room import ArenaRoom

logger = logging.getLogger(__name__)


def init_arena_socket(socketio, settings: Optional[ArenaSettings] = None, scheduler=None) -> RoomRegistry:
    """Register the arena socket handlers and return the room registry they share."""
    settings = settings or ArenaSettings()
    player_names: Dict[str, str] = {}

    def _emit_all(room: ArenaRoom, events: List[Outbound]) -> None:
        for event in events:
            target = event.to if event.to is not None else room.channel
            socketio.emit(event.name.value, event.payload, to=target)

    def _dispatch(room: ArenaRoom, events: List[Outbound]) -> None:
        _emit_all(room, events)
        _ensure_room_loop(room)

    registry = RoomRegistry(settings, scheduler=scheduler, sink=_dispatch)

    def _ensure_room_loop(room: ArenaRoom) -> None:
        with room.lock:
            if not room.is_active or room.running_loop == room.loop_generation:
                return
            generation = room.loop_generation
            room.running_loop = generation
        socketio.start_background_task(_room_loop, room, generation)

    def _room_loop(room: ArenaRoom, generation: int) -> None:
        interval = settings.tick_interval
        logger.debug('Room %s: tick loop %d started', room.code, generation)

        while True:
            with room.lock:
                if room.closed or not room.is_active or room.loop_generation != generation:
                    if room.running_loop == generation:
                        room.running_loop = None
                    break

            try:
                events = room.tick()
            except Exception:
                logger.exception('Room %s: tick failed', room.code)
                events = []

            _emit_all(room, events)
            socketio.sleep(interval)

        logger.debug('Room %s: tick loop %d stopped', room.code, generation)

    def _send_error(sid: str, exc: ArenaError) -> None:
        event = error_event(exc, sid)
        socketio.emit(event.name.value, event.payload, to=event.to)

    def guarded(handler):
        @functools.wraps(handler)
        def wrapper(*args):
            sid = request.sid
            try:
                handler(*args)
            except ArenaError as exc:
                logger.debug('Rejected %s from %s: %s', handler.__name__, sid, exc.reason)
                _send_error(sid, exc)
            except Exception:
                logger.exception('Error in %s for %s', handler.__name__, sid)
                socketio.emit(EventName.ERROR.value, {
                    'reason': 'internal',
                    'message': 'Error while processing the message',
                }, to=sid)
        return wrapper

    def _player_name(sid: str, payload: Optional[Dict]) -> Optional[str]:
        requested = (payload or {}).get('playerName')
        if isinstance(requested, str) and requested.strip():
            return requested.strip()
        return player_names.get(sid)

    def _leave(sid: str) -> None:
        room, events = registry.leave(sid)
        if room is None:
            return
        leave_room(room.channel, sid=sid)
        _dispatch(room, events)

    def _handle_intent(event: str, data) -> None:
        sid = request.sid
        room = registry.room_for(sid)
        if room is None:
            return
        intent = parse_intent(event, data)
        _dispatch(room, room.handle_intent(sid, intent))

    # ----------------------------- Lobby -----------------------------

    @socketio.on('setName')
    @guarded
    def handle_set_name(data=None):
        name = (data or {}).get('name') if isinstance(data, dict) else None
        if isinstance(name, str) and name.strip():
            player_names[request.sid] = name.strip()
        else:
            player_names.pop(request.sid, None)

    @socketio.on('createLobby')
    @guarded
    def handle_create_lobby(data=None):
        sid = request.sid
        payload = data if isinstance(data, dict) else {}
        room, events = registry.create_room(sid, _player_name(sid, payload))
        join_room(room.channel)
        _dispatch(room, events)

    @socketio.on('joinLobby')
    @guarded
    def handle_join_lobby(data=None):
        sid = request.sid
        payload = data if isinstance(data, dict) else {}
        code = payload.get('lobbyCode')
        if not isinstance(code, str):
            raise ProtocolViolation('malformed', 'Field lobbyCode must be a string')
        room, events = registry.join_room(sid, code, _player_name(sid, payload))
        join_room(room.channel)
        _dispatch(room, events)

    @socketio.on('leaveLobby')
    @guarded
    def handle_leave_lobby(_data=None):
        _leave(request.sid)

    @socketio.on('getLobbies')
    @guarded
    def handle_get_lobbies(_data=None):
        socketio.emit(EventName.LOBBY_LIST.value, {'lobbies': registry.list_open_rooms()}, to=request.sid)

    # ----------------------------- Match intents -----------------------------

    @socketio.on('move')
    @guarded
    def handle_move(data=None):
        _handle_intent('move', data)

    @socketio.on('aim')
    @guarded
    def handle_aim(data=None):
        _handle_intent('aim', data)

    @socketio.on('shoot')
    @guarded
    def handle_shoot(data=None):
        _handle_intent('shoot', data)

    @socketio.on('usePowerup')
    @guarded
    def handle_use_powerup(data=None):
        _handle_intent('usePowerup', data)

    @socketio.on('rematchVote')
    @guarded
    def handle_rematch_vote(data=None):
        _handle_intent('rematchVote', data)

    @socketio.on('disconnect')
    def handle_disconnect(*_args):
        sid = request.sid
        logger.info('Client disconnected: %s', sid)
        player_names.pop(sid, None)
        try:
            _leave(sid)
        except Exception:
            logger.exception('Cleanup failed for %s', sid)

    return registry
