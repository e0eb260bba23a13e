import math
from typing import Dict, Optional, Tuple


class MatchStatistics:
    """Per-player counters for one match; recreated on every (re)start."""

    def __init__(self, started_at: float = 0.0):
        self.started_at = started_at
        self.players: Dict[str, Dict] = {}

    def init_player(self, player_id: str, x: Optional[float] = None, y: Optional[float] = None) -> None:
        self.players[player_id] = {
            'shotsFired': 0,
            'shotsHit': 0,
            'totalDamageDealt': 0,
            'totalDamageTaken': 0,
            'powerupsUsed': 0,
            'distanceTraveled': 0.0,
            'kills': 0,
            'deaths': 0,
            'timeAlive': None,
            'lastPosition': (x, y) if x is not None and y is not None else None,
        }

    def record_shot(self, player_id: str) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['shotsFired'] += 1

    def record_hit(self, player_id: str, damage: int) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['shotsHit'] += 1
            stats['totalDamageDealt'] += damage

    def record_damage_taken(self, player_id: str, damage: int) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['totalDamageTaken'] += damage

    def record_powerup_use(self, player_id: str) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['powerupsUsed'] += 1

    def record_movement(self, player_id: str, x: float, y: float) -> None:
        stats = self.players.get(player_id)
        if not stats:
            return
        last: Optional[Tuple[float, float]] = stats['lastPosition']
        if last is not None:
            stats['distanceTraveled'] += math.hypot(x - last[0], y - last[1])
        stats['lastPosition'] = (x, y)

    def record_kill(self, player_id: str) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['kills'] += 1

    def record_death(self, player_id: str, now: float) -> None:
        stats = self.players.get(player_id)
        if stats:
            stats['deaths'] += 1
            if stats['timeAlive'] is None:
                stats['timeAlive'] = max(0.0, now - self.started_at)

    def get_stats(self, now: float) -> Dict[str, Dict]:
        result = {}
        for player_id, stats in self.players.items():
            fired = stats['shotsFired']
            time_alive = stats['timeAlive']
            if time_alive is None:
                time_alive = max(0.0, now - self.started_at)
            result[player_id] = {
                'shotsFired': fired,
                'shotsHit': stats['shotsHit'],
                'totalDamageDealt': stats['totalDamageDealt'],
                'totalDamageTaken': stats['totalDamageTaken'],
                'powerupsUsed': stats['powerupsUsed'],
                'distanceTraveled': round(stats['distanceTraveled'], 2),
                'kills': stats['kills'],
                'deaths': stats['deaths'],
                'timeAlive': round(time_alive, 2),
                'accuracy': int(round(stats['shotsHit'] / fired * 100)) if fired > 0 else 0,
            }
        return result
