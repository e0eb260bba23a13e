import math
import uuid
from typing import List, Optional

from model.arena_config import SHOT_COLORS, SHOT_EXPLOSIVE, SHOT_LASER, SHOT_NORMAL
from model.entities import Player, Projectile, QueuedMove
from model.errors import ProtocolViolation
from model.geometry import box_around, circle_vs_circle, clamp, distance, point_in_rect, rect_overlap

from .arena_combat import CombatResolver
from .arena_protocol import EventName, Outbound
from .arena_visibility import update_visibility


class ArenaSimulation:
    def __init__(self, room):
        self.m = room
        self.combat = CombatResolver(room)

    @property
    def settings(self):
        return self.m.settings

    # ----------------------------- Movement -----------------------------

    def queue_move(self, player: Player, dx: float, dy: float, elapsed: float) -> None:
        magnitude = math.hypot(dx, dy)
        if magnitude > 1.0:
            dx /= magnitude
            dy /= magnitude
        elapsed = clamp(elapsed, 0.0, self.settings.max_move_elapsed)
        if len(player.pending_moves) >= self.settings.max_queued_moves:
            return
        player.pending_moves.append(QueuedMove(dx, dy, elapsed))

    def _in_bounds_x(self, x: float) -> bool:
        half = self.settings.player_size / 2.0
        return x - half >= 0 and x + half <= self.settings.arena_width

    def _in_bounds_y(self, y: float) -> bool:
        half = self.settings.player_size / 2.0
        return y - half >= 0 and y + half <= self.settings.arena_height

    def _blocked(self, x: float, y: float) -> bool:
        box = box_around(x, y, self.settings.player_size)
        return any(rect_overlap(box, cover) for cover in self.m.covers)

    def move_player(self, player: Player, dx: float, dy: float, elapsed: float) -> None:
        """Axis-separated move so a blocked axis does not stop the other one."""
        step = self.settings.player_speed * elapsed
        new_x = player.x + dx * step
        new_y = player.y + dy * step

        if new_x != player.x and self._in_bounds_x(new_x) and not self._blocked(new_x, player.y):
            player.x = new_x
            self.m.stats.record_movement(player.id, player.x, player.y)

        if new_y != player.y and self._in_bounds_y(new_y) and not self._blocked(player.x, new_y):
            player.y = new_y
            self.m.stats.record_movement(player.id, player.x, player.y)

        if dx != 0 or dy != 0:
            player.rotation = math.atan2(dy, dx)

    def _step_movement(self, dt: float) -> None:
        """Apply queued moves, spending at most ``dt`` seconds of motion per player."""
        for player in self.m.players.values():
            moves, player.pending_moves = player.pending_moves, []
            budget = dt
            for move in moves:
                if budget <= 0:
                    break
                elapsed = min(move.elapsed, budget)
                budget -= elapsed
                self.move_player(player, move.dx, move.dy, elapsed)

    def handle_aim(self, player: Player, x: float, y: float) -> None:
        player.rotation = math.atan2(y - player.y, x - player.x)

    # ----------------------------- Shooting -----------------------------

    def handle_shoot(self, player: Player, target_x: float, target_y: float, now: float) -> None:
        if not self.m.is_active:
            raise ProtocolViolation('not_active', 'No match in progress')
        if player.reloading:
            raise ProtocolViolation('reloading', 'Still reloading')

        shot_type = player.next_shot_type or SHOT_NORMAL
        player.next_shot_type = None
        player.last_shot_at = now
        player.reloading = True
        player.reload_progress = 0.0
        self.m.stats.record_shot(player.id)

        angle = math.atan2(target_y - player.y, target_x - player.x)

        if shot_type == SHOT_LASER:
            start_x, start_y = player.x, player.y
            trace = self.combat.resolve_laser_shot(player, angle, now)
            self.m.emit(Outbound(EventName.INSTANT_PROJECTILE, {
                'projectile': {
                    'type': SHOT_LASER,
                    'ownerId': player.id,
                    'startX': start_x,
                    'startY': start_y,
                    'endX': trace.end_x,
                    'endY': trace.end_y,
                    'hitPlayerId': trace.target_id,
                    'color': SHOT_COLORS[SHOT_LASER],
                },
            }))
            return

        speed = self.settings.shot_speed(shot_type)
        offset = self.settings.player_size
        projectile = Projectile(
            id=str(uuid.uuid4()),
            owner_id=player.id,
            x=player.x + math.cos(angle) * offset,
            y=player.y + math.sin(angle) * offset,
            vx=math.cos(angle) * speed,
            vy=math.sin(angle) * speed,
            damage=self.settings.shot_damage(shot_type),
            kind=shot_type,
            color=SHOT_COLORS[shot_type],
            created_at=now,
        )
        self.m.projectiles.append(projectile)

        self.m.emit(Outbound(EventName.PROJECTILE_CREATED, {
            'projectile': {
                'id': projectile.id,
                'ownerId': player.id,
                'x': projectile.x,
                'y': projectile.y,
                'vx': projectile.vx,
                'vy': projectile.vy,
                'type': projectile.kind,
                'color': projectile.color,
                'targetX': target_x,
                'targetY': target_y,
            },
        }))

    # ----------------------------- Projectiles -----------------------------

    def _detonate(self, projectile: Projectile, now: float) -> None:
        if projectile.exploded:
            return
        projectile.exploded = True
        self.combat.resolve_explosion(projectile.x, projectile.y, projectile.owner_id, now)

    def _projectile_victim(self, projectile: Projectile) -> Optional[str]:
        player_radius = self.settings.player_size / 2.0
        for player_id, player in self.m.players.items():
            if player_id == projectile.owner_id:
                continue
            gap = distance(projectile.x, projectile.y, player.x, player.y)
            if circle_vs_circle(gap, player_radius, self.settings.projectile_size):
                return player_id
        return None

    def _step_projectiles(self, now: float, dt: float) -> None:
        s = self.settings
        survivors: List[Projectile] = []

        for projectile in self.m.projectiles:
            if not self.m.is_active:
                break

            projectile.x += projectile.vx * dt
            projectile.y += projectile.vy * dt

            if projectile.x < 0 or projectile.x > s.arena_width or projectile.y < 0 or projectile.y > s.arena_height:
                continue

            if any(point_in_rect(projectile.x, projectile.y, cover) for cover in self.m.covers):
                if projectile.kind == SHOT_EXPLOSIVE:
                    self._detonate(projectile, now)
                continue

            victim_id = self._projectile_victim(projectile)
            if victim_id is not None:
                if projectile.kind == SHOT_EXPLOSIVE:
                    self._detonate(projectile, now)
                else:
                    self.combat.apply_damage(victim_id, projectile.damage, projectile.owner_id, now)
                    self.m.stats.record_hit(projectile.owner_id, projectile.damage)
                continue

            if projectile.kind == SHOT_EXPLOSIVE and now - projectile.created_at > s.explosive_fuse:
                self._detonate(projectile, now)
                continue

            survivors.append(projectile)

        if self.m.is_active:
            self.m.projectiles = survivors

    # ----------------------------- Reload -----------------------------

    def _step_reload(self, now: float) -> None:
        reload_time = self.settings.reload_time
        for player in self.m.players.values():
            if not player.reloading:
                player.reload_progress = 1.0
                continue
            since = now - player.last_shot_at
            if reload_time <= 0 or since >= reload_time:
                player.reloading = False
                player.reload_progress = 1.0
            else:
                player.reload_progress = max(player.reload_progress, clamp(since / reload_time, 0.0, 1.0))

    # ----------------------------- Snapshots -----------------------------

    def snapshot_for(self, player_id: str) -> dict:
        players = {}
        for other_id, other in self.m.players.items():
            if other_id == player_id:
                players[other_id] = other.to_self_dict()
            else:
                players[other_id] = other.to_enemy_dict()
        return {
            'players': players,
            'projectiles': [p.to_dict() for p in self.m.projectiles],
            'covers': [c.to_dict() for c in self.m.covers],
            'explosions': [e.to_dict() for e in self.m.explosions],
        }

    def _emit_snapshots(self) -> None:
        for player_id in self.m.players:
            self.m.emit(Outbound(EventName.GAME_STATE, {'state': self.snapshot_for(player_id)}, to=player_id))

    def step(self, now: float) -> None:
        if not self.m.is_active:
            return

        dt = clamp(now - self.m.last_update, 0.0, self.settings.max_tick_delta)
        self.m.last_update = now

        self._step_projectiles(now, dt)
        if not self.m.is_active:
            return

        self._step_movement(dt)
        self._step_reload(now)
        update_visibility(list(self.m.players.values()), self.m.covers)
        self._emit_snapshots()
        self.m.explosions = []
