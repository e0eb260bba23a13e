import logging
import random
import string
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from model.arena_config import ArenaSettings
from model.errors import CapacityError, ProtocolViolation

from .arena_protocol import EventName, Outbound
from .arena_room import ArenaRoom

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


class RoomRegistry:
    """Process-wide code -> room map plus the player -> code index.

    Lock order is registry first, then room. Rooms never call back in here.
    """

    def __init__(
        self,
        settings: Optional[ArenaSettings] = None,
        scheduler: Optional[Callable] = None,
        clock: Callable[[], float] = time.time,
        sink: Optional[Callable] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or ArenaSettings()
        self.scheduler = scheduler
        self.clock = clock
        self.sink = sink
        self.rng = rng or random.SystemRandom()
        self.lock = threading.Lock()

        self.rooms: Dict[str, ArenaRoom] = {}
        self.player_rooms: Dict[str, str] = {}

    def generate_code(self) -> str:
        while True:
            code = ''.join(self.rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self.rooms:
                return code

    def _new_room(self, code: str) -> ArenaRoom:
        return ArenaRoom(
            code,
            settings=self.settings,
            scheduler=self.scheduler,
            clock=self.clock,
            sink=self.sink,
        )

    def create_room(self, player_id: str, name: Optional[str] = None) -> Tuple[ArenaRoom, List[Outbound]]:
        with self.lock:
            if player_id in self.player_rooms:
                raise ProtocolViolation('already_in_room', 'Already in a lobby')

            code = self.generate_code()
            room = self._new_room(code)
            events = [Outbound(EventName.LOBBY_CREATED, {'lobbyCode': code}, to=player_id)]
            events.extend(room.add_player(player_id, name))

            self.rooms[code] = room
            self.player_rooms[player_id] = code
            logger.info('Room %s created by %s', code, player_id)
            return room, events

    def join_room(self, player_id: str, code: str, name: Optional[str] = None) -> Tuple[ArenaRoom, List[Outbound]]:
        code = (code or '').strip().upper()
        with self.lock:
            if player_id in self.player_rooms:
                raise ProtocolViolation('already_in_room', 'Already in a lobby')

            room = self.rooms.get(code)
            if room is None or room.closed:
                raise CapacityError('room_not_found', f'Lobby {code} not found')

            joined = [Outbound(EventName.LOBBY_JOINED, {'lobbyCode': code}, to=player_id)]
            events = room.add_player(player_id, name)
            self.player_rooms[player_id] = code
            return room, joined + events

    def leave(self, player_id: str) -> Tuple[Optional[ArenaRoom], List[Outbound]]:
        with self.lock:
            code = self.player_rooms.pop(player_id, None)
            if code is None:
                return None, []
            room = self.rooms.get(code)
            if room is None:
                return None, []

            events = room.remove_player(player_id)
            if room.closed or not room.players:
                room.close()
                self.rooms.pop(code, None)
                logger.info('Room %s removed', code)
            return room, events

    def find(self, code: str) -> Optional[ArenaRoom]:
        with self.lock:
            return self.rooms.get((code or '').strip().upper())

    def room_for(self, player_id: str) -> Optional[ArenaRoom]:
        with self.lock:
            code = self.player_rooms.get(player_id)
            return self.rooms.get(code) if code else None

    def list_open_rooms(self) -> List[Dict]:
        with self.lock:
            rooms = list(self.rooms.values())
        lobbies = []
        for room in rooms:
            with room.lock:
                if not room.is_open():
                    continue
                lobbies.append({
                    'code': room.code,
                    'name': f'Lobby {room.code}',
                    'players': len(room.players),
                })
        return lobbies

    def __len__(self) -> int:
        with self.lock:
            return len(self.rooms)
