import logging
import math
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from model.arena_config import ArenaSettings
from model.entities import Cover, Explosion, Player, Projectile
from model.errors import CapacityError, ProtocolViolation
from model.match_stats import MatchStatistics

from .arena_protocol import (
    AimIntent,
    EventName,
    Intent,
    MoveIntent,
    Outbound,
    RematchVoteIntent,
    ShootIntent,
    UsePowerupIntent,
)
from .arena_simulation import ArenaSimulation
from .arena_visibility import update_visibility

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_NAME = 'Player'


class RoomPhase(str, Enum):
    FORMING = 'forming'
    READY = 'ready'
    ACTIVE = 'active'
    ENDED = 'ended'
    REMATCH_PENDING = 'rematch_pending'


def thread_timer(delay: float, callback: Callable[[], None]):
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class ArenaRoom:
    """One two-player match and everything it owns.

    All mutation happens under ``self.lock``. Public entry points return the
    outbound events they produced so the caller can emit them after the lock is
    released. Timer callbacks hand their events to ``sink`` instead.
    """

    REMATCH_VOTES_REQUIRED = 2

    def __init__(
        self,
        code: str,
        settings: Optional[ArenaSettings] = None,
        scheduler: Optional[Callable] = None,
        clock: Callable[[], float] = time.time,
        sink: Optional[Callable] = None,
    ):
        self.code = code
        self.settings = settings or ArenaSettings()
        self.scheduler = scheduler or thread_timer
        self.clock = clock
        self.sink = sink
        self.lock = threading.RLock()

        self.players: Dict[str, Player] = {}
        self.covers: List[Cover] = self._fresh_covers()
        self.projectiles: List[Projectile] = []
        self.explosions: List[Explosion] = []
        self.last_update = clock()

        self.phase = RoomPhase.FORMING
        self.rematch_votes = set()
        self.stats = MatchStatistics(self.last_update)
        self.match_started_at: Optional[float] = None
        self.match_ended_at: Optional[float] = None
        self.winner_id: Optional[str] = None

        self.loop_generation = 0
        self.running_loop: Optional[int] = None
        self.closed = False
        self._start_timer = None
        self._outbox: List[Outbound] = []

        self.simulation = ArenaSimulation(self)
        self.combat = self.simulation.combat

    @property
    def channel(self) -> str:
        return f'arena_{self.code}'

    @property
    def is_active(self) -> bool:
        return self.phase == RoomPhase.ACTIVE and not self.closed

    def is_open(self) -> bool:
        return not self.closed and self.phase == RoomPhase.FORMING and len(self.players) < self.settings.max_players

    def _fresh_covers(self) -> List[Cover]:
        return [Cover.from_layout(item) for item in self.settings.cover_layout]

    # ----------------------------- Outbox -----------------------------

    def emit(self, outbound: Outbound) -> None:
        self._outbox.append(outbound)

    def _drain(self) -> List[Outbound]:
        events, self._outbox = self._outbox, []
        return events

    def _flush(self, events: List[Outbound]) -> None:
        if events and self.sink is not None:
            self.sink(self, events)

    # ----------------------------- Roster -----------------------------

    def _free_slot(self) -> int:
        taken = {p.slot for p in self.players.values()}
        for slot in range(self.settings.max_players):
            if slot not in taken:
                return slot
        raise CapacityError('room_full', f'Room {self.code} is full')

    def _start_position(self, slot: int):
        positions = self.settings.start_positions
        return positions[slot % len(positions)]

    def lobby_payload(self) -> Dict:
        ordered = sorted(self.players.values(), key=lambda p: p.slot)
        return {
            'lobbyCode': self.code,
            'players': len(self.players),
            'names': [p.name for p in ordered],
            'phase': self.phase.value,
        }

    def summary(self) -> Dict:
        with self.lock:
            payload = self.lobby_payload()
            return {
                'code': self.code,
                'phase': payload['phase'],
                'players': payload['players'],
                'names': payload['names'],
            }

    def add_player(self, player_id: str, name: Optional[str] = None, now: Optional[float] = None) -> List[Outbound]:
        now = self.clock() if now is None else now
        with self.lock:
            if self.closed or self.phase != RoomPhase.FORMING or len(self.players) >= self.settings.max_players:
                raise CapacityError('room_full', f'Room {self.code} is not accepting players')
            if player_id in self.players:
                raise ProtocolViolation('already_in_room', 'Already seated in this room')

            slot = self._free_slot()
            x, y = self._start_position(slot)
            player = Player(
                id=player_id,
                name=(name or '').strip() or DEFAULT_PLAYER_NAME,
                slot=slot,
                x=x,
                y=y,
                rotation=0.0 if slot == 0 else math.pi,
                health=self.settings.max_health,
                max_health=self.settings.max_health,
            )
            self.players[player_id] = player
            self.stats.init_player(player_id, x, y)
            logger.info('Room %s: %s joined slot %d (%d/%d)', self.code, player.name, slot,
                        len(self.players), self.settings.max_players)

            if len(self.players) == self.settings.max_players:
                self.phase = RoomPhase.READY

            self.emit(Outbound(EventName.LOBBY_UPDATE, self.lobby_payload()))

            if self.phase == RoomPhase.READY:
                if self.settings.start_delay <= 0:
                    self.start_match(now)
                else:
                    self._schedule_start()

            return self._drain()

    def remove_player(self, player_id: str, now: Optional[float] = None) -> List[Outbound]:
        now = self.clock() if now is None else now
        with self.lock:
            player = self.players.get(player_id)
            if player is None:
                return self._drain()

            self._cancel_shield_timer(player)
            self._cancel_start_timer()
            del self.players[player_id]
            logger.info('Room %s: %s left during %s', self.code, player.name, self.phase.value)

            if not self.players:
                self.close()
                return self._drain()

            if self.phase == RoomPhase.ACTIVE:
                remaining_id = next(iter(self.players))
                self.end_match(remaining_id, now)

            # The survivor waits in the lobby for a new opponent.
            if self.phase in (RoomPhase.READY, RoomPhase.ENDED, RoomPhase.REMATCH_PENDING):
                self.rematch_votes.clear()
                self.phase = RoomPhase.FORMING

            self.emit(Outbound(EventName.LOBBY_UPDATE, self.lobby_payload()))
            return self._drain()

    # ----------------------------- Timers -----------------------------

    def _schedule_start(self) -> None:
        self._cancel_start_timer()
        self._start_timer = self.scheduler(self.settings.start_delay, self._delayed_start)

    def _cancel_start_timer(self) -> None:
        if self._start_timer is not None:
            self._start_timer.cancel()
            self._start_timer = None

    def _delayed_start(self) -> None:
        with self.lock:
            self._start_timer = None
            if self.closed or self.phase != RoomPhase.READY or len(self.players) != self.settings.max_players:
                return
            self.start_match(self.clock())
            events = self._drain()
        self._flush(events)

    def schedule_shield_expiry(self, player: Player) -> None:
        self._cancel_shield_timer(player)
        player.shield_token += 1
        token = player.shield_token
        player.shield_timer = self.scheduler(
            self.settings.shield_duration,
            lambda: self._expire_shield(player.id, player, token),
        )

    def _cancel_shield_timer(self, player: Player) -> None:
        if player.shield_timer is not None:
            player.shield_timer.cancel()
            player.shield_timer = None
        player.shield_token += 1

    def _expire_shield(self, player_id: str, player: Player, token: int) -> None:
        with self.lock:
            if self.closed or self.players.get(player_id) is not player:
                return
            if player.shield_token != token:
                return
            player.shield = 0
            player.shield_timer = None
            logger.debug('Room %s: shield expired for %s', self.code, player.name)

    # ----------------------------- Match -----------------------------

    def _reset_for_match(self, now: float) -> None:
        for player in self.players.values():
            self._cancel_shield_timer(player)
            x, y = self._start_position(player.slot)
            player.x = x
            player.y = y
            player.rotation = 0.0 if player.slot == 0 else math.pi
            player.health = self.settings.max_health
            player.max_health = self.settings.max_health
            player.points = 0
            player.shield = 0
            player.used_powerups.clear()
            player.next_shot_type = None
            player.reloading = False
            player.last_shot_at = 0.0
            player.reload_progress = 1.0
            player.visible_to_enemy = True
            player.pending_moves = []

        self.projectiles = []
        self.explosions = []
        self.covers = self._fresh_covers()
        self.rematch_votes.clear()
        self.stats = MatchStatistics(now)
        for player in self.players.values():
            self.stats.init_player(player.id, player.x, player.y)

    def start_match(self, now: float) -> None:
        if self.closed or len(self.players) != self.settings.max_players:
            return

        self._cancel_start_timer()
        self._reset_for_match(now)
        self.phase = RoomPhase.ACTIVE
        self.match_started_at = now
        self.match_ended_at = None
        self.winner_id = None
        self.last_update = now
        self.loop_generation += 1

        logger.info('Room %s: match started (generation %d)', self.code, self.loop_generation)

        update_visibility(list(self.players.values()), self.covers)
        covers = [c.to_dict() for c in self.covers]
        arena_size = {'width': self.settings.arena_width, 'height': self.settings.arena_height}
        for player_id, player in self.players.items():
            enemy = next((p for pid, p in self.players.items() if pid != player_id), None)
            self.emit(Outbound(EventName.GAME_START, {
                'localPlayer': player.to_self_dict(),
                'enemyPlayer': enemy.to_enemy_dict() if enemy is not None else None,
                'covers': covers,
                'arenaSize': arena_size,
                'roomCode': self.code,
            }, to=player_id))

    def end_match(self, winner_id: Optional[str], now: float) -> None:
        if self.phase != RoomPhase.ACTIVE:
            return

        self.phase = RoomPhase.ENDED
        self.match_ended_at = now
        self.winner_id = winner_id
        started = self.match_started_at if self.match_started_at is not None else now
        duration = int(math.floor(max(0.0, now - started)))

        for player in self.players.values():
            self._cancel_shield_timer(player)
            player.pending_moves = []

        logger.info('Room %s: match ended after %ds, winner=%s', self.code, duration, winner_id)

        self.emit(Outbound(EventName.GAME_OVER, {
            'winner': winner_id,
            'matchDuration': duration,
            'statistics': self.stats.get_stats(now),
            'finalState': {
                'players': {
                    pid: {'name': p.name, 'health': p.health, 'points': p.points}
                    for pid, p in self.players.items()
                },
            },
        }))

    # ----------------------------- Intents -----------------------------

    def handle_intent(self, player_id: str, intent: Intent, now: Optional[float] = None) -> List[Outbound]:
        now = self.clock() if now is None else now
        with self.lock:
            player = self.players.get(player_id)
            if player is None or self.closed:
                return self._drain()

            if isinstance(intent, MoveIntent):
                if self.is_active:
                    self.simulation.queue_move(player, intent.dx, intent.dy, intent.elapsed)
            elif isinstance(intent, AimIntent):
                if self.is_active:
                    self.simulation.handle_aim(player, intent.x, intent.y)
            elif isinstance(intent, ShootIntent):
                self.simulation.handle_shoot(player, intent.target_x, intent.target_y, now)
            elif isinstance(intent, UsePowerupIntent):
                if not self.is_active:
                    raise ProtocolViolation('not_active', 'No match in progress')
                self.combat.activate_powerup(player, intent.powerup, now)
            elif isinstance(intent, RematchVoteIntent):
                self.handle_rematch_vote(player_id, now)
            else:
                raise ProtocolViolation('malformed', f'Unsupported intent {type(intent).__name__}')

            return self._drain()

    def handle_rematch_vote(self, player_id: str, now: float) -> None:
        if self.phase not in (RoomPhase.ENDED, RoomPhase.REMATCH_PENDING):
            raise ProtocolViolation('no_match_to_rematch', 'No finished match to rematch')

        self.rematch_votes.add(player_id)
        self.phase = RoomPhase.REMATCH_PENDING
        self.emit(Outbound(EventName.REMATCH_VOTE, {
            'votes': len(self.rematch_votes),
            'required': self.REMATCH_VOTES_REQUIRED,
        }))

        if (len(self.players) == self.settings.max_players
                and all(pid in self.rematch_votes for pid in self.players)):
            logger.info('Room %s: rematch agreed', self.code)
            self.start_match(now)

    # ----------------------------- Tick / teardown -----------------------------

    def tick(self, now: Optional[float] = None) -> List[Outbound]:
        now = self.clock() if now is None else now
        with self.lock:
            if self.is_active:
                self.simulation.step(now)
            return self._drain()

    def close(self) -> None:
        with self.lock:
            if self.closed:
                return
            self.closed = True
            self._cancel_start_timer()
            for player in self.players.values():
                self._cancel_shield_timer(player)
            self.projectiles = []
            self.explosions = []
            logger.info('Room %s: closed', self.code)
