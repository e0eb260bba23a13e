"""Gameplay tuning for the arena and its environment overrides."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

POWERUP_LASER = 1
POWERUP_EXPLOSIVE = 2
POWERUP_SHIELD = 3

POWERUP_NAMES = {
    POWERUP_LASER: 'laser',
    POWERUP_EXPLOSIVE: 'explosive',
    POWERUP_SHIELD: 'shield',
}

SHOT_NORMAL = 'normal'
SHOT_LASER = 'laser'
SHOT_EXPLOSIVE = 'explosive'

SHOT_COLORS = {
    SHOT_NORMAL: '#ffff00',
    SHOT_LASER: '#00ff00',
    SHOT_EXPLOSIVE: '#ff6600',
}

DEFAULT_START_POSITIONS: List[Tuple[float, float]] = [
    (200.0, 1000.0),
    (1800.0, 1000.0),
]

DEFAULT_COVER_LAYOUT: List[Dict] = [
    # Central block
    {'id': 'center', 'x': 900, 'y': 900, 'width': 200, 'height': 200},

    # Corridors
    {'id': 'corridor1', 'x': 300, 'y': 400, 'width': 60, 'height': 400},
    {'id': 'corridor2', 'x': 1640, 'y': 400, 'width': 60, 'height': 400},
    {'id': 'corridor3', 'x': 300, 'y': 1200, 'width': 60, 'height': 400},
    {'id': 'corridor4', 'x': 1640, 'y': 1200, 'width': 60, 'height': 400},

    # Scattered cover
    {'id': 'cover1', 'x': 600, 'y': 600, 'width': 100, 'height': 100},
    {'id': 'cover2', 'x': 1300, 'y': 600, 'width': 100, 'height': 100},
    {'id': 'cover3', 'x': 600, 'y': 1300, 'width': 100, 'height': 100},
    {'id': 'cover4', 'x': 1300, 'y': 1300, 'width': 100, 'height': 100},

    # Side walls
    {'id': 'wall1', 'x': 500, 'y': 200, 'width': 300, 'height': 60},
    {'id': 'wall2', 'x': 1200, 'y': 200, 'width': 300, 'height': 60},
    {'id': 'wall3', 'x': 500, 'y': 1740, 'width': 300, 'height': 60},
    {'id': 'wall4', 'x': 1200, 'y': 1740, 'width': 300, 'height': 60},

    # Maze pieces
    {'id': 'maze1', 'x': 800, 'y': 500, 'width': 60, 'height': 200},
    {'id': 'maze2', 'x': 1140, 'y': 500, 'width': 60, 'height': 200},
    {'id': 'maze3', 'x': 800, 'y': 1300, 'width': 60, 'height': 200},
    {'id': 'maze4', 'x': 1140, 'y': 1300, 'width': 60, 'height': 200},
]


@dataclass
class ArenaSettings:
    arena_width: float = 2000.0
    arena_height: float = 2000.0

    tick_rate: int = 60
    max_tick_delta: float = 0.1
    start_delay: float = 1.0
    max_players: int = 2

    player_size: float = 30.0
    player_speed: float = 250.0
    max_health: int = 100
    reload_time: float = 1.0
    max_move_elapsed: float = 0.1
    max_queued_moves: int = 8

    projectile_speed: float = 600.0
    projectile_damage: int = 5
    projectile_size: float = 5.0

    laser_damage: int = 15
    laser_cost: int = 20
    laser_steps: int = 100

    explosive_damage: int = 20
    explosive_cost: int = 20
    explosive_radius: float = 100.0
    explosive_fuse: float = 0.4
    explosive_speed: float = 450.0

    shield_absorption: int = 20
    shield_cost: int = 20
    shield_duration: float = 10.0

    start_positions: List[Tuple[float, float]] = field(
        default_factory=lambda: list(DEFAULT_START_POSITIONS))
    cover_layout: List[Dict] = field(
        default_factory=lambda: [dict(item) for item in DEFAULT_COVER_LAYOUT])

    @property
    def tick_interval(self) -> float:
        return 1.0 / float(self.tick_rate)

    def powerup_cost(self, powerup_id: int) -> int:
        return {
            POWERUP_LASER: self.laser_cost,
            POWERUP_EXPLOSIVE: self.explosive_cost,
            POWERUP_SHIELD: self.shield_cost,
        }[powerup_id]

    def shot_damage(self, shot_type: str) -> int:
        if shot_type == SHOT_LASER:
            return self.laser_damage
        if shot_type == SHOT_EXPLOSIVE:
            return self.explosive_damage
        return self.projectile_damage

    def shot_speed(self, shot_type: str) -> float:
        if shot_type == SHOT_EXPLOSIVE:
            return self.explosive_speed
        return self.projectile_speed


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def settings_from_env() -> ArenaSettings:
    settings = ArenaSettings()
    settings.tick_rate = max(1, _env_number('ARENA_TICK_RATE', settings.tick_rate, int))
    settings.start_delay = max(0.0, _env_number('ARENA_START_DELAY', settings.start_delay, float))
    settings.reload_time = max(0.0, _env_number('ARENA_RELOAD_TIME', settings.reload_time, float))
    return settings


def get_game_config(settings: ArenaSettings) -> Dict:
    """Client-facing subset of the tuning, keyed the way the client reads it."""
    return {
        'arena': {
            'width': settings.arena_width,
            'height': settings.arena_height,
        },
        'player': {
            'size': settings.player_size,
            'speed': settings.player_speed,
            'maxHealth': settings.max_health,
            'reloadTime': int(settings.reload_time * 1000),
            'startPositions': [{'x': x, 'y': y} for x, y in settings.start_positions],
        },
        'projectile': {
            'speed': settings.projectile_speed,
            'damage': settings.projectile_damage,
            'size': settings.projectile_size,
        },
        'powerups': {
            'laser': {
                'id': POWERUP_LASER,
                'damage': settings.laser_damage,
                'cost': settings.laser_cost,
                'instant': True,
            },
            'explosive': {
                'id': POWERUP_EXPLOSIVE,
                'damage': settings.explosive_damage,
                'cost': settings.explosive_cost,
                'radius': settings.explosive_radius,
                'explosionDelay': int(settings.explosive_fuse * 1000),
                'speed': settings.explosive_speed,
            },
            'shield': {
                'id': POWERUP_SHIELD,
                'absorption': settings.shield_absorption,
                'cost': settings.shield_cost,
                'duration': int(settings.shield_duration * 1000),
            },
        },
        'tickRate': settings.tick_rate,
        'cover': [dict(item) for item in settings.cover_layout],
    }
