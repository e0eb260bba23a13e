import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from model.arena_config import (
    POWERUP_EXPLOSIVE,
    POWERUP_LASER,
    POWERUP_NAMES,
    POWERUP_SHIELD,
    SHOT_EXPLOSIVE,
    SHOT_LASER,
)
from model.entities import Explosion, Player
from model.errors import ProtocolViolation
from model.geometry import circle_vs_circle, distance, distance_to_rect, point_in_rect

from .arena_protocol import EventName, Outbound

logger = logging.getLogger(__name__)


def absorb_with_shield(shield: int, damage: int) -> Tuple[int, int]:
    """Return ``(shield_left, health_loss)`` for ``damage`` against ``shield``."""
    absorbed = min(damage, max(0, shield))
    return shield - absorbed, damage - absorbed


def falloff_damage(base: int, dist: float, radius: float) -> int:
    if radius <= 0 or dist >= radius:
        return 0
    return int(math.floor(base * (1.0 - dist / radius)))


@dataclass
class LaserTrace:
    target_id: Optional[str]
    end_x: float
    end_y: float


class CombatResolver:
    def __init__(self, room):
        self.m = room

    @property
    def settings(self):
        return self.m.settings

    def apply_damage(self, target_id: str, raw_damage: int, attacker_id: Optional[str], now: float) -> int:
        if not self.m.is_active:
            return 0

        target = self.m.players.get(target_id)
        if target is None or raw_damage <= 0:
            return 0

        target.shield, actual = absorb_with_shield(target.shield, int(raw_damage))
        target.health = max(0, target.health - actual)
        self.m.stats.record_damage_taken(target_id, actual)

        attacker = self.m.players.get(attacker_id) if attacker_id else None
        if attacker is not None and attacker_id != target_id:
            attacker.points += actual

        self.m.emit(Outbound(EventName.PLAYER_HIT, {
            'playerId': target_id,
            'attackerId': attacker_id,
            'health': target.health,
            'shield': target.shield,
            'damage': actual,
            'attackerPoints': attacker.points if attacker is not None else 0,
        }))

        if target.health <= 0:
            self.m.stats.record_death(target_id, now)
            winner_id = None
            if attacker is not None and attacker_id != target_id:
                self.m.stats.record_kill(attacker_id)
                winner_id = attacker_id
            self.m.end_match(winner_id, now)

        return actual

    def resolve_explosion(self, x: float, y: float, owner_id: Optional[str], now: float) -> Explosion:
        radius = self.settings.explosive_radius
        explosion = Explosion(x, y, radius)
        self.m.explosions.append(explosion)

        for player_id, player in list(self.m.players.items()):
            if not self.m.is_active:
                break
            dist = distance(player.x, player.y, x, y)
            if dist > radius:
                continue
            damage = falloff_damage(self.settings.explosive_damage, dist, radius)
            if damage <= 0:
                continue
            self.apply_damage(player_id, damage, owner_id, now)
            if player_id != owner_id:
                self.m.stats.record_hit(owner_id, damage)

        before = len(self.m.covers)
        self.m.covers = [c for c in self.m.covers if distance_to_rect(x, y, c) >= radius]
        destroyed = before - len(self.m.covers)
        if destroyed:
            logger.debug('Room %s: explosion at (%.0f, %.0f) destroyed %d cover', self.m.code, x, y, destroyed)
        return explosion

    def trace_laser(self, shooter: Player, angle: float) -> LaserTrace:
        s = self.settings
        max_distance = math.hypot(s.arena_width, s.arena_height)
        step = max_distance / s.laser_steps
        hit_radius = s.player_size / 2.0
        cos_a = math.cos(angle)
        sin_a = math.sin(angle)
        end_x, end_y = shooter.x, shooter.y

        for i in range(1, s.laser_steps + 1):
            check_x = shooter.x + cos_a * step * i
            check_y = shooter.y + sin_a * step * i

            if check_x < 0 or check_x > s.arena_width or check_y < 0 or check_y > s.arena_height:
                break
            end_x, end_y = check_x, check_y

            if any(point_in_rect(check_x, check_y, cover) for cover in self.m.covers):
                break

            for player_id, target in self.m.players.items():
                if player_id == shooter.id:
                    continue
                if circle_vs_circle(distance(check_x, check_y, target.x, target.y), hit_radius, 0.0):
                    return LaserTrace(player_id, check_x, check_y)

        return LaserTrace(None, end_x, end_y)

    def resolve_laser_shot(self, shooter: Player, angle: float, now: float) -> LaserTrace:
        trace = self.trace_laser(shooter, angle)
        if trace.target_id is not None:
            damage = self.settings.laser_damage
            self.apply_damage(trace.target_id, damage, shooter.id, now)
            self.m.stats.record_hit(shooter.id, damage)
        return trace

    def activate_powerup(self, player: Player, powerup_id: int, now: float) -> None:
        if powerup_id not in POWERUP_NAMES:
            raise ProtocolViolation('unknown_powerup', f'Unknown powerup {powerup_id}')
        if powerup_id in player.used_powerups:
            raise ProtocolViolation('already_used', 'Powerup already used')
        cost = self.settings.powerup_cost(powerup_id)
        if player.points < cost:
            raise ProtocolViolation('insufficient_points', 'Not enough points')
        if powerup_id in (POWERUP_LASER, POWERUP_EXPLOSIVE) and player.next_shot_type is not None:
            raise ProtocolViolation('shot_modifier_pending', 'Another shot modifier is already loaded')

        player.points -= cost
        player.used_powerups.add(powerup_id)
        self.m.stats.record_powerup_use(player.id)

        if powerup_id == POWERUP_LASER:
            player.next_shot_type = SHOT_LASER
        elif powerup_id == POWERUP_EXPLOSIVE:
            player.next_shot_type = SHOT_EXPLOSIVE
        elif powerup_id == POWERUP_SHIELD:
            player.shield = self.settings.shield_absorption
            self.m.schedule_shield_expiry(player)

        self.m.emit(Outbound(EventName.POWERUP_CONFIRMED, {
            'powerupNum': powerup_id,
            'powerup': POWERUP_NAMES[powerup_id],
            'newPoints': player.points,
            'usedPowerups': player.used_powerup_list(),
            'shield': player.shield,
        }, to=player.id))
