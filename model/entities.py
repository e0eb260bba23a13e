"""Arena entity models and their wire serialisation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from model.arena_config import SHOT_NORMAL


@dataclass
class Cover:
    """Destructible axis-aligned obstacle."""

    id: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_layout(cls, item: Dict) -> 'Cover':
        return cls(
            id=str(item['id']),
            x=float(item['x']),
            y=float(item['y']),
            width=float(item['width']),
            height=float(item['height']),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height,
        }


@dataclass
class QueuedMove:
    dx: float
    dy: float
    elapsed: float


@dataclass
class Player:
    """One occupant of a room."""

    id: str
    name: str
    slot: int
    x: float
    y: float
    rotation: float = 0.0
    health: int = 100
    max_health: int = 100
    points: int = 0
    shield: int = 0
    reloading: bool = False
    last_shot_at: float = 0.0
    reload_progress: float = 1.0
    used_powerups: Set[int] = field(default_factory=set)
    next_shot_type: Optional[str] = None
    visible_to_enemy: bool = True
    pending_moves: List[QueuedMove] = field(default_factory=list)

    # Shield expiry bookkeeping; the token changes whenever a timer is superseded.
    shield_timer: Optional[Any] = field(default=None, repr=False, compare=False)
    shield_token: int = field(default=0, repr=False, compare=False)

    def used_powerup_list(self) -> List[int]:
        return sorted(self.used_powerups)

    def to_self_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'x': self.x,
            'y': self.y,
            'rotation': self.rotation,
            'health': self.health,
            'shield': self.shield,
            'reloading': self.reloading,
            'reloadProgress': self.reload_progress,
            'points': self.points,
            'usedPowerups': self.used_powerup_list(),
            'nextShotType': self.next_shot_type,
            'visible': True,
        }

    def to_enemy_dict(self) -> Dict:
        if not self.visible_to_enemy:
            return {'visible': False}
        return {
            'id': self.id,
            'name': self.name,
            'x': self.x,
            'y': self.y,
            'rotation': self.rotation,
            'health': self.health,
            'shield': self.shield,
            'reloading': self.reloading,
            'reloadProgress': self.reload_progress,
            'visible': True,
        }


@dataclass
class Projectile:
    """A travelling shot. Lasers resolve instantly and never become one."""

    id: str
    owner_id: str
    x: float
    y: float
    vx: float
    vy: float
    damage: int
    kind: str = SHOT_NORMAL
    color: str = '#ffff00'
    created_at: float = 0.0
    exploded: bool = False

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'x': self.x,
            'y': self.y,
            'type': self.kind,
            'color': self.color,
        }


@dataclass
class Explosion:
    x: float
    y: float
    radius: float

    def to_dict(self) -> Dict:
        return {'x': self.x, 'y': self.y, 'radius': self.radius}
